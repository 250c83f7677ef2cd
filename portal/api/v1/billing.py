from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from portal.core.api_security import api_security
from portal.db.db import get_db
from portal.services.billing_service import list_active_packages

router = APIRouter(
    prefix="/billing", tags=["billing"], dependencies=[Depends(api_security)]
)


@router.get("/packages")
async def packages(db: AsyncSession = Depends(get_db)):
    data = await list_active_packages(db)
    return {"success": True, "data": data, "total": len(data)}
