from fastapi import APIRouter, Depends
from sqlmodel import Session

from hire_ledger.db import get_session
from hire_ledger.deps import require_user
from hire_ledger.models import User
from hire_ledger.schemas import DashboardRead
from hire_ledger.services.dashboard import load_dashboard
from hire_ledger.services.policy import Action, ensure_allowed

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("", response_model=DashboardRead)
def get_dashboard(
    session: Session = Depends(get_session),
    user: User = Depends(require_user),
):
    ensure_allowed(user.role, Action.VIEW_DASHBOARD)
    return load_dashboard(session)
