"""Ledger-wide routes."""
from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from loandesk.auth import Actor, get_ledger_admin
from loandesk.database import get_session
from loandesk.exporting.xlsx import export_ledger_workbook

router = APIRouter(prefix="/ledger", tags=["Ledger"])


@router.get("/export-xlsx")
def export_ledger_xlsx(
    db: Session = Depends(get_session),
    actor: Actor = Depends(get_ledger_admin),
) -> Response:
    content = export_ledger_workbook(db)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    filename = f"loandesk_ledger_export_{timestamp}.xlsx"
    return Response(
        content,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )
