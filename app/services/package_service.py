from typing import List
from app.db.mongodb import db
from app.schemas.package import ServicePackage

async def get_provider_packages(provider_id: int) -> List[ServicePackage]:
    """
    Get the active service packages a provider offers
    """
    cursor = db.db.service_packages.find(
        {"providerId": provider_id, "isActive": True}
    ).sort("name", 1)
    packages = await cursor.to_list(length=None)

    return [
        ServicePackage(
            id=int(package["packageId"]),
            name=package.get("name", ""),
            price=float(package.get("price", 0))
        )
        for package in packages
        if package.get("packageId") is not None
    ]
