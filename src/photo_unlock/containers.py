"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from photo_unlock.adapters.cloudinary_storage import CloudinaryImageStorage
from photo_unlock.adapters.mpesa_client import HttpxMpesaClient
from photo_unlock.adapters.supabase_auth_client import SupabaseAuthClient
from photo_unlock.adapters.supabase_image_repository import SupabaseImageRepository
from photo_unlock.adapters.supabase_profile_repository import (
    SupabaseProfileRepository,
)
from photo_unlock.adapters.supabase_transaction_repository import (
    SupabaseTransactionRepository,
)
from photo_unlock.config import Settings
from photo_unlock.services.auth import AuthService
from photo_unlock.services.callbacks import CallbackService
from photo_unlock.services.entitlements import EntitlementService
from photo_unlock.services.payments import PaymentService
from photo_unlock.services.photos import PhotoService
from photo_unlock.services.rate_limit import RateLimits, SlidingWindowRateLimiter
from photo_unlock.services.transactions import TransactionQueryService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    auth_service: AuthService
    payment_service: PaymentService
    callback_service: CallbackService
    transaction_service: TransactionQueryService
    photo_service: PhotoService
    rate_limits: RateLimits
    close_resources: Callable[[], Awaitable[None]]


def build_rate_limits(settings: Settings) -> RateLimits:
    """Create the per-route-group limiters from settings."""
    window = settings.rate_limit_window_seconds
    return RateLimits(
        general=SlidingWindowRateLimiter(settings.rate_limit_requests, window),
        payments=SlidingWindowRateLimiter(settings.payment_rate_limit_requests, window),
        uploads=SlidingWindowRateLimiter(settings.upload_rate_limit_requests, window),
    )


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    transaction_repository = SupabaseTransactionRepository(supabase_client)
    image_repository = SupabaseImageRepository(supabase_client)
    profile_repository = SupabaseProfileRepository(supabase_client)
    storage = CloudinaryImageStorage.create(
        cloud_name=resolved_settings.cloudinary_cloud_name,
        api_key=resolved_settings.cloudinary_api_key,
        api_secret=resolved_settings.cloudinary_api_secret,
    )
    mpesa_client = HttpxMpesaClient.create(
        consumer_key=resolved_settings.mpesa_consumer_key,
        consumer_secret=resolved_settings.mpesa_consumer_secret,
        short_code=resolved_settings.mpesa_business_short_code,
        passkey=resolved_settings.mpesa_passkey,
        base_url=resolved_settings.mpesa_base_url,
        timeout=resolved_settings.mpesa_timeout_seconds,
    )
    entitlement_service = EntitlementService(image_repository)

    async def close_resources() -> None:
        await mpesa_client.close()

    return AppContainer(
        settings=resolved_settings,
        auth_service=AuthService(
            SupabaseAuthClient(supabase_client), profile_repository
        ),
        payment_service=PaymentService(
            mpesa_client=mpesa_client,
            repository=transaction_repository,
            callback_url=resolved_settings.mpesa_callback_url,
        ),
        callback_service=CallbackService(
            transaction_repository, entitlement_service
        ),
        transaction_service=TransactionQueryService(
            transaction_repository,
            expiry_hours=resolved_settings.transaction_expiry_hours,
        ),
        photo_service=PhotoService(image_repository, profile_repository, storage),
        rate_limits=build_rate_limits(resolved_settings),
        close_resources=close_resources,
    )
