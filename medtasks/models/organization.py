# medtasks/models/organization.py
from __future__ import annotations

from sqlalchemy import Column, Integer, String
from medtasks.database import Base


class Organization(Base):
    __tablename__ = "organizations"

    id = Column(Integer, primary_key=True, index=True)
    # the type code (ВПО, ДПО, КС, КДЦ) lives inside the name
    name = Column(String, nullable=False, unique=True)
