from __future__ import annotations

from fastapi import APIRouter, Depends, File, Form, Path, Query, Request, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from recuerdos.api.auth import get_app_settings, get_storage, require_current_user
from recuerdos.core.config import Settings
from recuerdos.core.database import get_db
from recuerdos.core.errors import NotFound
from recuerdos.core.security import CallerIdentity
from recuerdos.schemas import MemoryCreate, MemoryFilters, MemoryUpdate, parse_input
from recuerdos.services.memory_service import MemoryService
from recuerdos.services.memory_store import MemoryStore
from recuerdos.services.photos import PhotoUpload
from recuerdos.services.storage import ObjectStorage

router = APIRouter(prefix="/api/recuerdos", tags=["recuerdos"])


def get_memory_service(
    db: AsyncSession = Depends(get_db),
    storage: ObjectStorage | None = Depends(get_storage),
    settings: Settings = Depends(get_app_settings),
) -> MemoryService:
    return MemoryService(MemoryStore(db), storage, settings.MAX_PHOTO_BYTES)


def _parse_memory_id(raw_id: str) -> int:
    try:
        memory_id = int(raw_id)
    except ValueError as exc:
        raise NotFound() from exc
    if memory_id < 1:
        raise NotFound()
    return memory_id


def _form_fields(**fields: str | None) -> dict[str, str]:
    return {name: value for name, value in fields.items() if value is not None}


async def _read_photo(foto: UploadFile | None, max_bytes: int) -> PhotoUpload | None:
    if foto is None:
        return None
    # one byte past the limit is enough for the size check to reject it
    data = await foto.read(max_bytes + 1)
    if not data and not foto.filename:
        # browsers send an empty part when no file was chosen
        return None
    return PhotoUpload(filename=foto.filename or "foto", content_type=foto.content_type or "", data=data)


@router.get("")
async def list_memories(
    search: str | None = Query(default=None),
    year: str | None = Query(default=None),
    month: str | None = Query(default=None),
    order: str | None = Query(default=None),
    current_user: CallerIdentity = Depends(require_current_user),
    service: MemoryService = Depends(get_memory_service),
):
    filters = parse_input(MemoryFilters, search=search, year=year, month=month, order=order)
    memories = await service.list_memories(current_user, filters)
    return [memory.to_dict() for memory in memories]


@router.get("/{memory_id}")
async def get_memory(
    memory_id: str = Path(...),
    current_user: CallerIdentity = Depends(require_current_user),
    service: MemoryService = Depends(get_memory_service),
):
    memory = await service.get_memory(current_user, _parse_memory_id(memory_id))
    return memory.to_dict()


@router.post("", status_code=201)
async def create_memory(
    titulo: str | None = Form(default=None),
    descripcion: str | None = Form(default=None),
    fecha: str | None = Form(default=None),
    foto: UploadFile | None = File(default=None),
    current_user: CallerIdentity = Depends(require_current_user),
    service: MemoryService = Depends(get_memory_service),
):
    data = parse_input(MemoryCreate, **_form_fields(titulo=titulo, descripcion=descripcion, fecha=fecha))
    memory = await service.create_memory(current_user, data, await _read_photo(foto, service.max_photo_bytes))
    return {
        "id": memory.id,
        "titulo": memory.title,
        "descripcion": memory.description,
        "fecha": memory.date.isoformat(),
        "url_foto": memory.photo_url,
        "message": "Recuerdo creado exitosamente",
    }


@router.put("/{memory_id}")
async def update_memory(
    request: Request,
    memory_id: str = Path(...),
    titulo: str | None = Form(default=None),
    descripcion: str | None = Form(default=None),
    fecha: str | None = Form(default=None),
    foto: UploadFile | None = File(default=None),
    current_user: CallerIdentity = Depends(require_current_user),
    service: MemoryService = Depends(get_memory_service),
):
    parsed_id = _parse_memory_id(memory_id)
    fields = _form_fields(titulo=titulo, descripcion=descripcion, fecha=fecha)
    if descripcion is None and "descripcion" in await request.form():
        # an empty description field clears it
        fields["descripcion"] = ""
    data = parse_input(MemoryUpdate, **fields)
    await service.update_memory(current_user, parsed_id, data, await _read_photo(foto, service.max_photo_bytes))
    return {"message": "Recuerdo actualizado exitosamente"}


@router.delete("/{memory_id}")
async def delete_memory(
    memory_id: str = Path(...),
    current_user: CallerIdentity = Depends(require_current_user),
    service: MemoryService = Depends(get_memory_service),
):
    await service.delete_memory(current_user, _parse_memory_id(memory_id))
    return {"message": "Recuerdo eliminado exitosamente"}
