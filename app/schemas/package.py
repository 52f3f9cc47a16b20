from pydantic import BaseModel
from typing import List

class ServicePackage(BaseModel):
    id: int
    name: str
    price: float = 0

class PackagesResponse(BaseModel):
    packages: List[ServicePackage] = []
