from __future__ import annotations

from fastapi import APIRouter, Depends

from ticketbot.api.deps import get_resolver, require_admin_key
from ticketbot.schemas.admin.department import DepartmentOut
from ticketbot.services.ticket_resolver import SqlTicketResolver

router = APIRouter(
    prefix="/admin/departments",
    tags=["admin"],
    dependencies=[Depends(require_admin_key)],
)


@router.get("", response_model=list[DepartmentOut])
async def list_departments(
    resolver: SqlTicketResolver = Depends(get_resolver),
) -> list[DepartmentOut]:
    departments = await resolver.list_departments()
    return [DepartmentOut.model_validate(item) for item in departments]
