from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List, Dict, Any


class AgendaEventCreate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    startTime: Optional[str] = None
    endTime: Optional[str] = None
    location: Optional[str] = None
    attendees: Optional[List[str]] = None
    allDay: Optional[bool] = None
    priority: Optional[str] = None
    color: Optional[str] = None
    reminderMinutes: Optional[int] = None
    recurrenceType: Optional[str] = None
    userId: Optional[str] = None


class AgendaEventUpdate(AgendaEventCreate):
    id: Optional[str] = None


class NotificationCreate(BaseModel):
    userId: Optional[str] = None
    type: Optional[str] = None
    title: Optional[str] = None
    message: Optional[str] = None
    priority: str = "medium"
    actionUrl: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class NotificationRef(BaseModel):
    notificationId: Optional[str] = None


class UserRef(BaseModel):
    userId: Optional[str] = None


class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    companyName: Optional[str] = None
    mobileNumber: Optional[str] = None
    information: Optional[str] = None
    calUsername: Optional[str] = None
    calApiKey: Optional[str] = None
    calEventTypeId: Optional[str] = None


class ProfileRead(BaseModel):
    name: str = ""
    companyName: str = ""
    mobileNumber: str = ""
    information: str = ""
    calUsername: str = ""
    calApiKey: str = ""
    calEventTypeId: str = ""


class BusinessContext(BaseModel):
    name: Optional[str] = None
    services: Optional[List[str]] = None
    pricing: Optional[Dict[str, float]] = None
    availability: Optional[str] = None
    contact: Optional[str] = None


class AgentContext(BaseModel):
    business: Optional[BusinessContext] = None
    recentTranscriptions: Optional[List[Dict[str, Any]]] = None
    activeActions: Optional[List[Dict[str, Any]]] = None


class AgentChatRequest(BaseModel):
    message: str = Field(min_length=1, max_length=2000)
    sessionId: str = Field(min_length=1, max_length=100)
    context: Optional[AgentContext] = None


class AgentAction(BaseModel):
    type: str
    title: str = ""
    description: str = ""
    customerName: Optional[str] = None
    priority: str = "medium"
    suggestedTiming: Optional[str] = None
    content: Optional[str] = None


class AgentChatResponse(BaseModel):
    message: str
    actions: List[AgentAction]
    sessionId: str
    timestamp: int


class SubscriptionCreate(BaseModel):
    userId: Optional[str] = None
    planId: Optional[str] = None
    stripeCustomerId: Optional[str] = None


class PortalSessionRequest(BaseModel):
    userId: Optional[str] = None
    returnUrl: Optional[str] = None


class CheckoutRequest(BaseModel):
    planId: Optional[str] = None
    userId: Optional[str] = None
    email: Optional[str] = None


class StripeSessionRequest(BaseModel):
    sessionId: Optional[str] = None


class WebhookTestRequest(BaseModel):
    userId: Optional[str] = None
    planId: str = "pro-monthly"


class ContactForm(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    phone: Optional[str] = None
    company: Optional[str] = None
    message: str = Field(min_length=1)


class PwaMessage(BaseModel):
    type: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
