import sys
import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI
from rpcproxy.config import Settings, ConfigurationError
from rpcproxy.interfaces.http.app import create_app
from rpcproxy.logging import shutdown_logging

load_dotenv()

try:
    settings = Settings()
except ConfigurationError as e:
    # Handle configuration errors gracefully
    print(f"\nConfiguration Error:\n{e}", file=sys.stderr)
    sys.exit(1)
except Exception as e:
    # Handle other initialization errors
    print(f"\nUnexpected error during configuration: {e}", file=sys.stderr)
    sys.exit(1)

try:
    app: FastAPI = create_app(settings)
except Exception as e:
    print(f"\nFailed to initialize application: {str(e)}", file=sys.stderr)
    print("Please check your configuration and upstream URLs.", file=sys.stderr)
    raise SystemExit(1)

if __name__ == "__main__":
    try:
        # uvicorn stops accepting connections on SIGINT/SIGTERM, then runs the lifespan shutdown
        uvicorn.run(app, **settings.uvicorn_options())
    finally:
        shutdown_logging()
