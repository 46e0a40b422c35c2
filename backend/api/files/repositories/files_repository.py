"""Files repository — data access layer."""

from sqlalchemy.exc import IntegrityError

from database import SessionLocal
from exceptions import DuplicateTitleError
from api.files.orm.file_model import FileModel
from api.files.dto.file import FileAccess, FileResponse


def _get_session():
    return SessionLocal()


def _model_to_dto(model: FileModel) -> FileResponse:
    return FileResponse(
        id=model.id,
        title=model.title,
        filename=model.filename,
        content_type=model.content_type,
        size=model.size or 0,
        is_folder=bool(model.is_folder),
        file_count=model.file_count,
        is_verified=bool(model.is_verified),
        created_at=model.created_at,
    )


def _model_to_access(model: FileModel) -> FileAccess:
    return FileAccess(
        id=model.id,
        title=model.title,
        filename=model.filename,
        file_path=model.file_path,
        secret_code=model.secret_code,
        content_type=model.content_type,
        is_folder=bool(model.is_folder),
    )


def search(query: str | None = None, limit: int | None = None) -> list[FileResponse]:
    """Newest first, optionally filtered by a case-insensitive title substring."""
    with _get_session() as session:
        q = session.query(FileModel)
        if query:
            q = q.filter(FileModel.title.ilike(f"%{query}%"))
        q = q.order_by(FileModel.created_at.desc())
        if limit:
            q = q.limit(limit)
        return [_model_to_dto(m) for m in q.all()]


def get_by_id(file_id: str) -> FileResponse | None:
    with _get_session() as session:
        model = session.get(FileModel, file_id)
        return _model_to_dto(model) if model else None


def get_access_by_id(file_id: str) -> FileAccess | None:
    with _get_session() as session:
        model = session.get(FileModel, file_id)
        return _model_to_access(model) if model else None


def title_exists(title: str) -> bool:
    with _get_session() as session:
        return session.query(FileModel.id).filter_by(title=title).first() is not None


def create(
    title: str,
    filename: str,
    file_path: str,
    secret_code: str,
    content_type: str,
    size: int,
    is_folder: bool = False,
    file_count: int | None = None,
    file_id: str | None = None,
) -> FileResponse:
    with _get_session() as session:
        model = FileModel(
            title=title,
            filename=filename,
            file_path=file_path,
            secret_code=secret_code,
            content_type=content_type,
            size=size,
            is_folder=is_folder,
            file_count=file_count,
        )
        if file_id:
            model.id = file_id
        session.add(model)
        try:
            session.commit()
        except IntegrityError as e:
            session.rollback()
            raise DuplicateTitleError(f"A file titled '{title}' already exists") from e
        session.refresh(model)
        return _model_to_dto(model)


def delete_by_id(file_id: str) -> bool:
    with _get_session() as session:
        model = session.get(FileModel, file_id)
        if not model:
            return False
        session.delete(model)
        session.commit()
        return True
