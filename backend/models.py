"""
SQLAlchemy models and Pydantic schemas for the agent team backend.

SharedDocument backs the SQL document store. The Pydantic models describe
the HTTP API request and response bodies.
"""

import time
import uuid
from typing import Dict, List

from sqlalchemy import Column, String, BigInteger, Text, UniqueConstraint
from pydantic import BaseModel, Field

from database import Base


# ============================================================================
# SQLAlchemy Models
# ============================================================================

class SharedDocument(Base):
    """One text document of the team namespace, addressed by (namespace, key)."""
    __tablename__ = "SharedDocument"
    __table_args__ = (UniqueConstraint("namespace", "key", name="uq_shared_document_namespace_key"),)

    id = Column(String, primary_key=True, default=lambda: uuid.uuid4().hex)
    namespace = Column(String, nullable=False, index=True)
    key = Column(String, nullable=False)
    content = Column(Text, nullable=False, default="")
    createdAt = Column(BigInteger, nullable=False, default=lambda: int(time.time() * 1000))
    updatedAt = Column(BigInteger, nullable=False, default=lambda: int(time.time() * 1000), onupdate=lambda: int(time.time() * 1000))

    def __repr__(self):
        return f"<SharedDocument(namespace={self.namespace}, key={self.key})>"


# ============================================================================
# Pydantic Schemas (HTTP API)
# ============================================================================

class ChatRequest(BaseModel):
    """Request model for sending a message to one agent."""
    agent: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)


class ChatResponse(BaseModel):
    agent: str
    response: str


class BroadcastRequest(BaseModel):
    """Request model for sending a message to every agent."""
    message: str = Field(..., min_length=1)


class BroadcastResponse(BaseModel):
    responses: Dict[str, str]


class AgentInfo(BaseModel):
    name: str
    display_name: str
    role: str


class TeamStatusResponse(BaseModel):
    goals: str
    decisions: str
    status: str


class DocumentWriteRequest(BaseModel):
    content: str


class DocumentResponse(BaseModel):
    key: str
    content: str


class DocumentListResponse(BaseModel):
    keys: List[str]


class WriteResult(BaseModel):
    success: bool
    key: str
