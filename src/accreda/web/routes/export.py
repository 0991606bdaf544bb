"""CSAW export endpoint."""

import asyncio

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from accreda.core.accounts import Session
from accreda.core.roles import Role
from accreda.reports.csaw import export_csaw
from accreda.web.deps import require_role

router = APIRouter(prefix="/api/export", tags=["export"])


@router.get("/csaw")
async def export_csaw_pdf(session: Session = Depends(require_role(Role.EIT))) -> Response:
    """Download the filled CSAW worksheet."""
    pdf_bytes = await asyncio.to_thread(export_csaw, session.user_id)
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": 'attachment; filename="csaw.pdf"'},
    )
