"""Object storage backends"""
from sfgs_mailer.services.storage.r2_service import ObjectNotFound, R2Service, get_r2_service

__all__ = ["ObjectNotFound", "R2Service", "get_r2_service"]
