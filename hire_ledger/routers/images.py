from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import Response

from hire_ledger.config import get_settings
from hire_ledger.deps import get_image_store, require_user
from hire_ledger.error import NotFoundError
from hire_ledger.models import User
from hire_ledger.schemas import ImageUploadResponse
from hire_ledger.services.images import ImageStore, store_upload
from hire_ledger.services.policy import Action, ensure_allowed

router = APIRouter(prefix="/images", tags=["images"])


@router.post("/upload", response_model=ImageUploadResponse)
def upload_image(
    file: UploadFile = File(...),
    store: ImageStore = Depends(get_image_store),
    user: User = Depends(require_user),
):
    ensure_allowed(user.role, Action.MANAGE_IMAGES)
    data = file.file.read()
    path = store_upload(store, data, file.content_type, file.filename, get_settings().max_image_bytes)
    return {"url": f"/images/{path}", "filename": path}


@router.get("/{path:path}")
def get_image(path: str, store: ImageStore = Depends(get_image_store)):
    found = store.get(path)
    if found is None:
        raise NotFoundError("Image not found")
    data, content_type = found
    return Response(
        content=data,
        media_type=content_type,
        headers={"Cache-Control": "public, max-age=31536000"},
    )


@router.delete("/{path:path}")
def delete_image(
    path: str,
    store: ImageStore = Depends(get_image_store),
    user: User = Depends(require_user),
):
    ensure_allowed(user.role, Action.MANAGE_IMAGES)
    if not store.delete(path):
        raise NotFoundError("Image not found")
    return {"ok": True}
