import asyncio
import sys
from pathlib import Path


def ensure_dirs():
    static_uploads = Path(__file__).resolve().parents[1] / 'static' / 'uploads'
    static_uploads.mkdir(parents=True, exist_ok=True)


async def recreate_db():
    backend_root = Path(__file__).resolve().parents[1]
    db_path = backend_root / 'level.db'
    if db_path.exists():
        db_path.unlink()

    # Ensure backend root on import path
    sys.path.insert(0, str(backend_root))

    from app.database import create_tables  # type: ignore
    await create_tables()


if __name__ == '__main__':
    ensure_dirs()
    asyncio.run(recreate_db())
    print('Database recreated and static/uploads ensured.')
