import uvicorn

from config import HOST, LOG_LEVEL, PORT, RELOAD


def run():
    # Una sola conexión SQLite compartida: un solo proceso
    uvicorn.run(
        "main:app",
        host=HOST,
        port=PORT,
        reload=RELOAD,
        workers=1,
        log_level=LOG_LEVEL,
        http="httptools"
    )


if __name__ == "__main__":
    run()
