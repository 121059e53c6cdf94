import uvicorn

from streamgate.config import settings

if __name__ == "__main__":
    uvicorn.run("streamgate.main:app", host=settings.host, port=settings.port)
