"""
FastAPI application - Main entry point
"""

from dotenv import load_dotenv

load_dotenv()

import logging
from datetime import datetime

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from guest_checkout.api.dependencies import api_key_protection, session_backend, storefront_client
from guest_checkout.api.endpoints.checkout import checkout_api
from guest_checkout.integrations.clients.real_http.storefront import RealStorefrontClient

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Guest Checkout API",
    description="Guest checkout with external payment redirect, capture and order placement",
    version="1.0.0",
    dependencies=[Depends(api_key_protection)],
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(checkout_api, prefix="/api/v1")


@app.get("/", tags=["Health"])
async def root():
    return {"service": "Guest Checkout API", "status": "healthy", "version": "1.0.0", "timestamp": datetime.now().isoformat()}


@app.get("/health", tags=["Health"])
async def health_check():
    """Detailed health check (session store, storefront mode)."""
    return {
        "status": "healthy",
        "session_store": session_backend.ping(),
        "storefront": "real" if isinstance(storefront_client, RealStorefrontClient) else "mock",
        "timestamp": datetime.now().isoformat(),
    }
