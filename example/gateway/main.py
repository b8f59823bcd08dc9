"""
Gateway - minimal configuration example.

Usage:
    uvicorn main:app --host 0.0.0.0 --port 8000

    OPENAPI_DOCUMENTS=openapi/users.yaml,openapi/companies.yaml uvicorn main:app
"""

import os

from restgraph import load_document
from restgraph.gateway import Gateway

documents = [
    load_document(path.strip())
    for path in os.getenv("OPENAPI_DOCUMENTS", "openapi/users.yaml").split(",")
    if path.strip()
]

gateway = Gateway(
    documents,
    options={
        "baseUrl": os.getenv("API_BASE_URL", "http://users:8001"),
        "createSubscriptionsFromCallbacks": True,
    },
    redis_url=os.getenv("REDIS_URL"),
)

app = gateway.app
