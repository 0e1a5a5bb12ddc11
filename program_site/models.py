from sqlalchemy import Column, Integer, String, ForeignKey, Text, Boolean, Date, Time, DateTime, func
from sqlalchemy.orm import relationship
from .database import Base

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, index=True)
    hashed_password = Column(String)

class City(Base):
    __tablename__ = "cities"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, index=True)
    # Optional; public pages fall back to slugify(name)
    slug = Column(String, unique=True, nullable=True)
    image_url = Column(Text, nullable=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    venues = relationship("Venue", back_populates="city")
    contacts = relationship("Contact", back_populates="city")

class Venue(Base):
    __tablename__ = "venues"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, index=True)
    slug = Column(String, index=True)
    city_id = Column(Integer, ForeignKey("cities.id"), nullable=True)
    address = Column(Text, nullable=True)
    google_maps_url = Column(Text, nullable=True)

    city = relationship("City", back_populates="venues")
    sessions = relationship("ProgramSession", back_populates="venue")

    @property
    def city_name(self):
        return self.city.name if self.city else None

class Contact(Base):
    __tablename__ = "contacts"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, index=True)
    email = Column(String, unique=True, nullable=True)
    phone = Column(String, nullable=True)
    whatsapp = Column(String, nullable=True)
    city_id = Column(Integer, ForeignKey("cities.id"), nullable=True)

    city = relationship("City", back_populates="contacts")
    sessions = relationship("ProgramSession", back_populates="contact")

class Program(Base):
    __tablename__ = "programs"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, index=True)
    parent_id = Column(Integer, ForeignKey("programs.id"), nullable=True)
    slug = Column(String, unique=True, index=True)
    image_url = Column(Text, nullable=True)
    sub_text = Column(Text, nullable=True)
    details_external = Column(Boolean, nullable=False, default=False)
    external_link = Column(Text, nullable=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    parent = relationship("Program", remote_side=[id], back_populates="children")
    children = relationship("Program", back_populates="parent")
    sessions = relationship("ProgramSession", back_populates="program")

class ProgramSession(Base):
    __tablename__ = "sessions"

    id = Column(Integer, primary_key=True, index=True)
    program_id = Column(Integer, ForeignKey("programs.id"), nullable=True, index=True)
    venue_id = Column(Integer, ForeignKey("venues.id"), nullable=True)
    contact_id = Column(Integer, ForeignKey("contacts.id"), nullable=True)
    start_date = Column(Date, nullable=False, index=True)
    end_date = Column(Date, nullable=True)
    start_time = Column(Time, nullable=True)
    end_time = Column(Time, nullable=True)
    language = Column(String, nullable=True)
    is_published = Column(Boolean, nullable=False, default=False)
    registrations_allowed = Column(Boolean, nullable=False, default=False)
    registration_link = Column(Text, nullable=True)
    open_without_registration = Column(Boolean, nullable=False, default=False)

    program = relationship("Program", back_populates="sessions")
    venue = relationship("Venue", back_populates="sessions")
    contact = relationship("Contact", back_populates="sessions")

    @property
    def program_name(self):
        return self.program.name if self.program else None

    @property
    def venue_name(self):
        return self.venue.name if self.venue else None

    @property
    def city_name(self):
        return self.venue.city_name if self.venue else None

    @property
    def contact_name(self):
        return self.contact.name if self.contact else None
