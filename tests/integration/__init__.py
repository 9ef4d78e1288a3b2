"""
Integration tests package.

Integration tests drive the FastAPI app over HTTP: routing,
authentication, the error envelope and the video pipeline together.
They run against in-memory SQLite and in-process fakes, so no network
or API keys are needed.

To run only the integration tests:
    pytest -m integration
"""
