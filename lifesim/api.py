"""FastAPI backend streaming the particle life simulation over a WebSocket."""
from __future__ import annotations

import asyncio
import json
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
from starlette.websockets import WebSocketState

from .config import DEFAULT_CONFIG, SimConfig
from .presets import get_preset, list_presets
from .settings import InteractionTable, SimulationSettings
from .simulation import Simulation

# ============================================================================
# Pydantic Models
# ============================================================================

class SettingsUpdate(BaseModel):
    """Update physics tunables (the interaction table is left as is)."""
    friction: Optional[float] = Field(default=None, ge=0.0, lt=1.0)
    interaction_radius: Optional[float] = Field(default=None, gt=0.0)
    particle_radius: Optional[float] = Field(default=None, gt=0.0)


class InteractionModel(BaseModel):
    dist: float
    strength: float


class RelationsUpdate(BaseModel):
    """Replace the whole interaction table."""
    relations: List[List[InteractionModel]]


# ============================================================================
# FastAPI App with Lifespan
# ============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the background tick loop for the lifetime of the app."""
    global _simulation_task
    print("Starting background simulation task")
    _simulation_task = asyncio.create_task(_simulation_loop())

    yield

    print("Stopping background simulation task")
    _simulation_task.cancel()
    try:
        await _simulation_task
    except asyncio.CancelledError:
        pass
    _simulation.close()

app = FastAPI(title="Particle Life Engine", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Global state
_config: SimConfig = DEFAULT_CONFIG
_simulation = Simulation(_config)
_state_lock = asyncio.Lock()
_websocket_clients: set = set()
_simulation_task: Optional[asyncio.Task] = None
_pointer_target: Optional[List[float]] = None


# ============================================================================
# Background Simulation Task
# ============================================================================

async def _simulation_loop() -> None:
    """Step the simulation and broadcast its state to all clients."""
    while True:
        async with _state_lock:
            # Tick runs off the event loop thread
            await asyncio.to_thread(_simulation.step, _config.dt, _pointer_target)
            state = _state_payload()

            if _simulation.tick % 600 == 0:
                print(f"Tick {_simulation.tick}, t={_simulation.t:.1f}s, "
                      f"clients={len(_websocket_clients)}")

        message = {"type": "state", "payload": state}
        dead_clients = set()
        for client in list(_websocket_clients):
            try:
                if client.client_state == WebSocketState.CONNECTED:
                    await client.send_json(message)
                else:
                    dead_clients.add(client)
            except Exception as e:
                print(f"Dropping client after send error: {type(e).__name__}: {e}")
                dead_clients.add(client)

        _websocket_clients.difference_update(dead_clients)

        await asyncio.sleep(_config.frame_interval)


# ============================================================================
# Helper Functions
# ============================================================================

def _settings_payload() -> Dict[str, Any]:
    return {
        "settings": _simulation.settings.to_dict(),
        "population": {
            "particle_count": len(_simulation.particles),
            "species_count": _simulation.settings.species_count,
            "width": _config.width,
            "height": _config.height,
        },
    }


def _state_payload() -> Dict[str, Any]:
    state = _simulation.get_state()
    state["pointer"] = _pointer_target
    return state


def _relations_table(relations: List[List[Any]]) -> InteractionTable:
    """Build a table matching the running species count."""
    table = InteractionTable.from_rows(relations)
    if table.size != _simulation.settings.species_count:
        raise ValueError(
            f"Table size {table.size} doesn't match "
            f"species count {_simulation.settings.species_count}"
        )
    return table


# ============================================================================
# REST Endpoints
# ============================================================================

@app.get("/health")
async def health() -> Dict[str, str]:
    """Health check."""
    return {"status": "ok"}


@app.get("/state")
async def get_state() -> Dict[str, Any]:
    """Current render state."""
    async with _state_lock:
        return _state_payload()


@app.get("/settings")
async def get_settings() -> Dict[str, Any]:
    """Get current settings in their file format."""
    async with _state_lock:
        return _settings_payload()


@app.post("/settings")
async def update_settings(update: SettingsUpdate) -> Dict[str, Any]:
    """Rebuild settings with new tunables."""
    async with _state_lock:
        changes = {k: v for k, v in update.model_dump().items() if v is not None}
        try:
            _simulation.set_settings(_simulation.settings.replace(**changes))
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return _settings_payload()


@app.post("/relations")
async def update_relations(update: RelationsUpdate) -> Dict[str, Any]:
    """Replace the interaction table."""
    async with _state_lock:
        rows = [[(cell.dist, cell.strength) for cell in row] for row in update.relations]
        try:
            table = _relations_table(rows)
            _simulation.set_settings(_simulation.settings.replace(table=table))
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return _settings_payload()


@app.post("/randomize")
async def randomize_settings() -> Dict[str, Any]:
    """Draw a fresh random interaction table."""
    async with _state_lock:
        _simulation.set_settings(SimulationSettings.random(_simulation.rng))
        return _settings_payload()


@app.post("/reset")
async def reset_simulation() -> Dict[str, str]:
    """Re-randomize the population."""
    async with _state_lock:
        _simulation.reset()
        return {"status": "reset"}


@app.get("/presets")
async def get_presets() -> List[Dict[str, Any]]:
    """List available presets."""
    return [
        {
            "name": p.name,
            "description": p.description,
            "n_species": p.n_species,
            "relations": p.table.to_rows(),
        }
        for p in list_presets()
    ]


@app.post("/presets/{name}")
async def apply_preset(name: str) -> Dict[str, Any]:
    """Switch to a preset's settings."""
    async with _state_lock:
        try:
            preset = get_preset(name)
        except ValueError as e:
            raise HTTPException(status_code=404, detail=str(e))
        _simulation.set_settings(preset.settings())
        return {"preset": preset.name, **_settings_payload()}


# ============================================================================
# WebSocket
# ============================================================================

def _handle_message(message: Dict[str, Any]) -> None:
    """Handle client commands."""
    global _pointer_target

    if not isinstance(message, dict):
        raise ValueError("Messages must be JSON objects")
    msg_type = message.get("type")

    if msg_type == "pointer":
        target = message.get("target")
        if target is not None and len(target) != 2:
            raise ValueError("Pointer target must be [x, y] or null")
        _pointer_target = None if target is None else [float(v) for v in target]

    elif msg_type == "reset":
        _simulation.reset()

    elif msg_type == "randomize":
        _simulation.set_settings(SimulationSettings.random(_simulation.rng))

    elif msg_type == "use_preset":
        name = message.get("name")
        if name is None:
            raise ValueError("Message missing 'name'")
        _simulation.set_settings(get_preset(name).settings())

    elif msg_type == "update_relations":
        relations = message.get("relations")
        if relations is None:
            raise ValueError("Message missing 'relations'")
        table = _relations_table(relations)
        _simulation.set_settings(_simulation.settings.replace(table=table))

    else:
        raise ValueError(f"Unknown message type {msg_type!r}")


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    """Stream simulation state; accept pointer and control messages."""
    await websocket.accept()
    _websocket_clients.add(websocket)
    print(f"Client connected, total clients: {len(_websocket_clients)}")

    try:
        async with _state_lock:
            state = _state_payload()
        await websocket.send_json({"type": "state", "payload": state})

        while True:
            text = await websocket.receive_text()
            try:
                message = json.loads(text)
                async with _state_lock:
                    _handle_message(message)
                    state = _state_payload()
            except (ValueError, TypeError) as exc:
                await websocket.send_json({"type": "error", "detail": str(exc)})
                continue
            await websocket.send_json({"type": "state", "payload": state})

    except WebSocketDisconnect:
        pass
    finally:
        _websocket_clients.discard(websocket)
        print(f"Client disconnected, remaining clients: {len(_websocket_clients)}")
