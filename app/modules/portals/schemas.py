from pydantic import BaseModel
from typing import Optional, List


class PortalLoginResponse(BaseModel):
    portal: str
    next: str
    reason: Optional[str] = None
    login_endpoint: str


class NavigationLink(BaseModel):
    label: str
    method: str = "GET"
    href: str


class PortalResponse(BaseModel):
    portal: str
    user_id: str
    username: Optional[str] = None
    role: str
    navigation: List[NavigationLink]
