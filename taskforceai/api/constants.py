"""
Constants for API Client Module
================================

Header names, media types and mock-mode values shared by the transports
and the client facade.
"""

# Request headers
API_KEY_HEADER = "x-api-key"
AUTHORIZATION_HEADER = "Authorization"
SDK_LANGUAGE_HEADER = "X-SDK-Language"
SDK_LANGUAGE = "python"
EVENT_STREAM_MEDIA_TYPE = "text/event-stream"
DEFAULT_UPLOAD_MIME_TYPE = "application/octet-stream"

# Mock mode
MOCK_TASK_PREFIX = "mock-task-"
MOCK_RESULT = "This is a mock response. Configure your API key to get real results."
