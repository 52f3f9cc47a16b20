from typing import List, Dict, Any, Optional
from app.db.mongodb import db

async def get_days_in_range(provider_id: int, start_date: str, end_date: str) -> List[Dict[str, Any]]:
    """Get a provider's stored day records between two YYYY-MM-DD keys (inclusive)"""
    cursor = db.db.provider_availability.find(
        {"providerId": provider_id, "date": {"$gte": start_date, "$lte": end_date}}
    ).sort("date", 1)
    return await cursor.to_list(length=None)

async def get_day(provider_id: int, date: str) -> Optional[Dict[str, Any]]:
    """Get a provider's stored record for one date"""
    return await db.db.provider_availability.find_one(
        {"providerId": provider_id, "date": date}
    )

async def replace_day(provider_id: int, day_data: Dict[str, Any]) -> bool:
    """Replace the whole record for a date, creating it when missing"""
    result = await db.db.provider_availability.update_one(
        {"providerId": provider_id, "date": day_data["date"]},
        {"$set": {
            "isAvailable": day_data["isAvailable"],
            "timeSlots": day_data["timeSlots"],
            "updatedAt": day_data.get("updatedAt"),
        }},
        upsert=True
    )
    return result.acknowledged

async def pull_time_slot(provider_id: int, date: str, slot_id: str) -> bool:
    """Remove one slot from a date. Returns False when no slot matched."""
    result = await db.db.provider_availability.update_one(
        {"providerId": provider_id, "date": date, "timeSlots.id": slot_id},
        {"$pull": {"timeSlots": {"id": slot_id}}}
    )
    return result.modified_count > 0
