# relay/server.py
import uvicorn
from dotenv import load_dotenv

from relay.config import Settings


def main():
    load_dotenv()
    settings = Settings.from_env()
    uvicorn.run("relay.app:app", host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    main()
