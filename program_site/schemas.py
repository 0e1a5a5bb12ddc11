from datetime import date, time, datetime
from pydantic import BaseModel, BeforeValidator
from typing import Annotated, List, Optional

def _blank_to_none(value):
    # Admin forms submit untouched optional inputs as ""
    if isinstance(value, str) and not value.strip():
        return None
    return value

NullableStr = Annotated[Optional[str], BeforeValidator(_blank_to_none)]
NullableInt = Annotated[Optional[int], BeforeValidator(_blank_to_none)]
NullableDate = Annotated[Optional[date], BeforeValidator(_blank_to_none)]
NullableTime = Annotated[Optional[time], BeforeValidator(_blank_to_none)]

# --- Cities ---

class CityBase(BaseModel):
    name: str = ""
    slug: NullableStr = None
    image_url: NullableStr = None

class CityCreate(CityBase):
    pass

class City(CityBase):
    id: int

    class Config:
        from_attributes = True

class CityPage(BaseModel):
    items: List[City]
    total: int
    page: int
    total_pages: int

# --- Venues ---

class VenueBase(BaseModel):
    name: str = ""
    city_id: NullableInt = None
    address: NullableStr = None
    google_maps_url: NullableStr = None

class VenueCreate(VenueBase):
    pass

class Venue(VenueBase):
    id: int
    slug: Optional[str] = None
    city_name: Optional[str] = None

    class Config:
        from_attributes = True

class VenuePage(BaseModel):
    items: List[Venue]
    total: int
    page: int
    total_pages: int

# --- Contacts ---

class ContactBase(BaseModel):
    name: str = ""
    email: NullableStr = None
    phone: NullableStr = None
    whatsapp: NullableStr = None
    city_id: NullableInt = None

class ContactCreate(ContactBase):
    pass

class Contact(ContactBase):
    id: int

    class Config:
        from_attributes = True

class ContactPage(BaseModel):
    items: List[Contact]
    total: int
    page: int
    total_pages: int

# --- Programs ---

class ProgramBase(BaseModel):
    name: str = ""
    parent_id: NullableInt = None
    image_url: NullableStr = None
    sub_text: NullableStr = None
    details_external: bool = False
    external_link: NullableStr = None

class ProgramCreate(ProgramBase):
    pass

class Program(ProgramBase):
    id: int
    slug: Optional[str] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class ProgramRow(Program):
    indent: bool = False

class ProgramPage(BaseModel):
    items: List[ProgramRow]
    total: int
    page: int
    total_pages: int

class PublicPrograms(BaseModel):
    programs: List[Program]
    hasMore: bool

# --- Sessions ---

class SessionBase(BaseModel):
    program_id: NullableInt = None
    venue_id: NullableInt = None
    contact_id: NullableInt = None
    start_date: NullableDate = None
    end_date: NullableDate = None
    start_time: NullableTime = None
    end_time: NullableTime = None
    language: NullableStr = None
    is_published: bool = False
    registrations_allowed: bool = False
    registration_link: NullableStr = None
    open_without_registration: bool = False

class SessionCreate(SessionBase):
    pass

class Session(SessionBase):
    id: int
    program_name: Optional[str] = None
    venue_name: Optional[str] = None
    city_name: Optional[str] = None
    contact_name: Optional[str] = None

    class Config:
        from_attributes = True

class SessionPage(BaseModel):
    items: List[Session]
    total: int
    page: int
    total_pages: int

# --- Admin helpers ---

class DeleteRequest(BaseModel):
    table: Optional[str] = None
    id: Optional[int] = None

class Lookups(BaseModel):
    programs: List[Program]
    venues: List[Venue]
    contacts: List[Contact]
    cities: List[City]

# --- Public pages ---

class ProgramSummary(BaseModel):
    name: str
    image_url: Optional[str] = None
    sub_text: Optional[str] = None
    updated_at: Optional[datetime] = None

class VenueSummary(BaseModel):
    name: str
    slug: Optional[str] = None
    google_maps_url: Optional[str] = None
    city_name: Optional[str] = None

class ContactSummary(BaseModel):
    phone: Optional[str] = None
    whatsapp: Optional[str] = None

class SessionCard(BaseModel):
    id: int
    start_date: date
    end_date: Optional[date] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    dates_label: str
    time_label: str
    language: Optional[str] = None
    registrations_allowed: bool
    registration_url: Optional[str] = None
    open_without_registration: bool
    program: Optional[ProgramSummary] = None
    venue: Optional[VenueSummary] = None
    contact: Optional[ContactSummary] = None

class CityCard(BaseModel):
    city_key: str
    city_name: str
    slug: str
    slug_source: str
    image_url: Optional[str] = None
    updated_at: Optional[datetime] = None

class ProgramCities(BaseModel):
    program: Program
    cities: List[CityCard]

class CitySessions(BaseModel):
    title: str
    program: Optional[Program] = None
    city_name: str
    sessions: List[SessionCard]

class VenueSessions(BaseModel):
    title: str
    program: Program
    venue: VenueSummary
    sessions: List[SessionCard]

class ContactGroup(BaseModel):
    city_name: str
    contacts: List[Contact]

# --- Auth ---

class UserBase(BaseModel):
    username: str

class UserCreate(UserBase):
    password: str

class User(UserBase):
    id: int

    class Config:
        from_attributes = True

class Token(BaseModel):
    access_token: str
    token_type: str

class TokenData(BaseModel):
    username: Optional[str] = None
