"""XS script bundling service.

Resolves scripts from the remote XS script repository and packs them into
downloadable bundles, running long manifest-driven bundles on a Celery queue.
"""
