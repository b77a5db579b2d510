"""Start the pricing service with uvicorn"""
import os
import sys

import uvicorn

if __name__ == "__main__":
    # Run from the backend directory so pricing_service imports without installing
    base_dir = os.path.dirname(os.path.abspath(__file__))
    os.chdir(base_dir)
    if base_dir not in sys.path:
        sys.path.insert(0, base_dir)

    from pricing_service.config import config

    print(f"Starting server in: {base_dir}")
    print(f"Server will start at: http://{config.SERVER_HOST}:{config.SERVER_PORT}")
    print("Press Ctrl+C to stop the server")
    print("-" * 50)

    uvicorn.run(
        "pricing_service.main:app",
        host=config.SERVER_HOST,
        port=config.SERVER_PORT,
        reload=config.SERVER_RELOAD,
        log_level="info"
    )
