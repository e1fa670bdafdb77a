#!/usr/bin/env python3
import uvicorn
from libris.configs import OPTIONS

if __name__ == "__main__":
    print(f"Starting uvicorn server on {OPTIONS['host']}:{OPTIONS['port']}...")
    uvicorn.run("libris.app:app", **OPTIONS)
