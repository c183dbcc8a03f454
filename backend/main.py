"""
FastAPI backend for the agent team.

Thin HTTP surface over the team router: chat with one agent, broadcast to
the whole team, read the team status and read/write shared documents.
"""

import json
import os
from datetime import datetime, timezone
from typing import List, Optional

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware

from completion import provider_status
from logger import get_logger, log_file_path
from models import (
    AgentInfo,
    BroadcastRequest,
    BroadcastResponse,
    ChatRequest,
    ChatResponse,
    DocumentListResponse,
    DocumentResponse,
    DocumentWriteRequest,
    TeamStatusResponse,
    WriteResult,
)
from team.router import TeamRouter, create_default_team
from team.routine import TeamRoutine
from team.store import GOALS, InvalidDocumentKey, create_store_from_env, normalize_key

load_dotenv()

# Initialize logger
logger = get_logger()

app = FastAPI(
    title="Agent Team Backend",
    description="Multi-agent team with shared documents and delegation",
    version="0.1.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_team: Optional[TeamRouter] = None
team_routine: Optional[TeamRoutine] = None


def get_team() -> TeamRouter:
    """Dependency returning the process-wide team, built on first use."""
    global _team
    if _team is None:
        _team = create_default_team(create_store_from_env(), context={"tools": {}})
    return _team


def _validated_key(key: str) -> str:
    try:
        return normalize_key(key)
    except InvalidDocumentKey as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.get("/")
async def root():
    """Root endpoint - API information."""
    return {
        "message": "Agent Team Backend API",
        "version": "0.1.0",
        "docs": "/docs"
    }


@app.get("/health")
async def health(team: TeamRouter = Depends(get_team)):
    """Health check endpoint."""
    store_status = "ok" if team.store.exists(GOALS) else "unavailable"
    completion = provider_status()
    routines_status = "running" if team_routine and team_routine.scheduler.running else "stopped"

    status = "healthy" if store_status == "ok" and completion["api_key_configured"] else "degraded"

    return {
        "status": status,
        "service": "agent-team-backend",
        "document_store": store_status,
        "completion": completion,
        "routines": routines_status,
        "routine_jobs": team_routine.list_jobs() if team_routine else [],
        "agents": team.agent_names,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


@app.get("/api/team/agents", response_model=List[AgentInfo])
async def list_agents(team: TeamRouter = Depends(get_team)):
    return team.list_agents()


@app.post("/api/team/chat", response_model=ChatResponse)
async def chat(request: ChatRequest, team: TeamRouter = Depends(get_team)):
    """
    Send a message to one agent.

    Delegation between agents is resolved before the answer is returned.
    """
    try:
        response = await team.chat(request.agent, request.message)
    except Exception as e:
        logger.error(
            "Error during team chat",
            extra={"agent": request.agent, "metadata": {"error": str(e)}}
        )
        raise HTTPException(status_code=500, detail=f"Chat failed: {str(e)}")

    return ChatResponse(agent=request.agent, response=response)


@app.post("/api/team/broadcast", response_model=BroadcastResponse)
async def broadcast(request: BroadcastRequest, team: TeamRouter = Depends(get_team)):
    """Send a message to every agent and collect the answers."""
    try:
        responses = await team.broadcast(request.message)
    except Exception as e:
        logger.error("Error during team broadcast", extra={"metadata": {"error": str(e)}})
        raise HTTPException(status_code=500, detail=f"Broadcast failed: {str(e)}")

    return BroadcastResponse(responses=responses)


@app.get("/api/team/status", response_model=TeamStatusResponse)
async def team_status(team: TeamRouter = Depends(get_team)):
    return team.status()


@app.get("/api/team/documents", response_model=DocumentListResponse)
async def list_documents(team: TeamRouter = Depends(get_team)):
    return DocumentListResponse(keys=team.store.list_keys())


@app.post("/api/team/documents/{key:path}/append", response_model=WriteResult)
async def append_document(key: str, request: DocumentWriteRequest, team: TeamRouter = Depends(get_team)):
    """Append a timestamped block to a shared document."""
    key = _validated_key(key)
    if not team.store.append(key, request.content):
        raise HTTPException(status_code=500, detail=f"Failed to append to document: {key}")
    return WriteResult(success=True, key=key)


@app.get("/api/team/documents/{key:path}", response_model=DocumentResponse)
async def read_document(key: str, team: TeamRouter = Depends(get_team)):
    key = _validated_key(key)
    if not team.store.exists(key):
        raise HTTPException(status_code=404, detail="Document not found")
    return DocumentResponse(key=key, content=team.store.read(key))


@app.put("/api/team/documents/{key:path}", response_model=WriteResult)
async def write_document(key: str, request: DocumentWriteRequest, team: TeamRouter = Depends(get_team)):
    """Replace the full content of a shared document."""
    key = _validated_key(key)
    if not team.store.write(key, request.content):
        raise HTTPException(status_code=500, detail=f"Failed to write document: {key}")
    return WriteResult(success=True, key=key)


@app.get("/api/logs")
async def get_logs(limit: int = Query(default=100, ge=1, le=1000)):
    """
    Get recent log entries from the structured JSON log file.

    Args:
        limit: Maximum number of log entries to return (1-1000, default: 100)

    Returns:
        JSON object with logs array containing parsed log entries
    """
    log_path = log_file_path()
    logs = []

    try:
        if log_path.exists():
            with open(log_path, 'r', encoding='utf-8') as f:
                lines = f.readlines()

            # Parse JSON log entries (most recent first)
            for line in reversed(lines):
                if len(logs) >= limit:
                    break

                line = line.strip()
                if not line:
                    continue

                try:
                    logs.append(json.loads(line))
                except json.JSONDecodeError:
                    # Skip invalid JSON lines
                    continue

    except Exception as e:
        logger.error(
            "Error reading log file",
            extra={"metadata": {"error": str(e), "log_file": str(log_path)}}
        )

    return {"logs": logs}


@app.on_event("startup")
async def startup_event():
    """Application startup - build the team and start routines if enabled."""
    global team_routine
    logger.info("Starting Agent Team Backend")
    team = app.dependency_overrides.get(get_team, get_team)()

    if os.getenv("TEAM_ROUTINES_ENABLED", "False").lower() == "true":
        team_routine = TeamRoutine(team)
        team_routine.start()


@app.on_event("shutdown")
async def shutdown_event():
    """Application shutdown - stop routines."""
    logger.info("Shutting down Agent Team Backend")
    if team_routine:
        team_routine.shutdown(wait=True)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000, log_level="info")
