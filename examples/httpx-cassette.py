#!/usr/bin/env python3
"""Record once, replay forever. Run twice: the second run never touches the network."""
import os, httpx
from rewind.transports import VcrTransport

path = os.environ.get("REWIND_CASSETTE", "/tmp/rewind-demo.json")

with httpx.Client(transport=VcrTransport(path)) as client:
    r = client.get("https://httpbin.org/get", params={"demo": "rewind"})
    print("Status:", r.status_code, "| replayed:", r.headers.get("X-Vcr-Cache") == "true")
print(f"Cassette saved to {path}")
