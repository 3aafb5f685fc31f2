"""
Tenant IAM - ASGI entrypoint

    uvicorn tenant_iam.main:app
"""

from tenant_iam.app import create_app


app = create_app()
