from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from portal.models.billing import BillingPackage
from portal.schemas.payment import BillingPackageOut


async def list_active_packages(db: AsyncSession) -> list[BillingPackageOut]:
    res = await db.execute(
        select(BillingPackage)
        .where(BillingPackage.is_active.is_(True))
        .order_by(BillingPackage.sort_order.asc(), BillingPackage.id.asc())
    )
    return [
        BillingPackageOut(
            id=pkg.package_code,
            name=pkg.package_name,
            silver=pkg.silver_amount,
            bonus=pkg.bonus_silver,
            price=pkg.price_vnd,
            popular=pkg.is_popular,
            packages=[pkg.package_code],
            description=pkg.description,
            sort_order=pkg.sort_order,
        )
        for pkg in res.scalars().all()
    ]
