import uvicorn
from dealflow.core.config import settings


def main():
    """Start the FastAPI backend server."""
    uvicorn.run("dealflow.main:app", host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    main()
