"""Константы клиента."""

from typing import Final

# ===== HTTP STATUS CODES =====
HTTP_OK: Final[int] = 200
HTTP_CREATED: Final[int] = 201
HTTP_NO_CONTENT: Final[int] = 204
HTTP_BAD_REQUEST: Final[int] = 400
HTTP_UNAUTHORIZED: Final[int] = 401
HTTP_FORBIDDEN: Final[int] = 403
HTTP_NOT_FOUND: Final[int] = 404
HTTP_INTERNAL_SERVER_ERROR: Final[int] = 500

# ===== API ENDPOINTS =====
ENDPOINT_HEALTH: Final[str] = "/health"
ENDPOINT_USERS_LOGIN: Final[str] = "/users/login"
ENDPOINT_USERS_REGISTER: Final[str] = "/users/register"
ENDPOINT_USERS_ME: Final[str] = "/users/me"
ENDPOINT_USERS_LOGOUT: Final[str] = "/users/logout"

# ===== TIMEOUTS =====
DEFAULT_API_TIMEOUT: Final[float] = 30.0
HEALTH_CHECK_TIMEOUT: Final[float] = 5.0

# ===== CREDENTIAL STORE =====
STORAGE_TOKEN_KEY: Final[str] = "token"

# ===== SESSION STATE KEYS (Streamlit) =====
SESSION_RUNTIME: Final[str] = "pds_runtime"
SESSION_ROUTE: Final[str] = "pds_route"
SESSION_STORED_TOKEN: Final[str] = "pds_stored_token"
SESSION_STORED_TOKEN_LOADED: Final[str] = "pds_stored_token_loaded"
SESSION_PENDING_MESSAGES: Final[str] = "pds_pending_messages"

# ===== ROUTES =====
ROUTE_ROOT: Final[str] = "/"
ROUTE_LOGIN: Final[str] = "/login"
ROUTE_REGISTER: Final[str] = "/register"
ROUTE_DASHBOARD: Final[str] = "/dashboard"
ROUTE_MESSAGES: Final[str] = "/messages"
ROUTE_COMMUNITY: Final[str] = "/community"
ROUTE_BALANCE: Final[str] = "/balance"
ROUTE_PROFILE: Final[str] = "/profile"
ROUTE_MODERATION: Final[str] = "/moderation"
ROUTE_ADMIN: Final[str] = "/admin"

# ===== NOTIFICATION LEVELS =====
LEVEL_SUCCESS: Final[str] = "success"
LEVEL_ERROR: Final[str] = "error"
LEVEL_INFO: Final[str] = "info"

# ===== UI MESSAGES =====
MSG_LOGIN_SUCCESS: Final[str] = "Welcome back, {username}!"
MSG_LOGIN_FAILED: Final[str] = "Login failed"
MSG_INVALID_CREDENTIALS: Final[str] = "Invalid username or password"
MSG_LOGIN_INTERRUPTED: Final[str] = "Login was interrupted. Please try again."
MSG_REGISTER_SUCCESS: Final[str] = "Registration successful! Please login."
MSG_REGISTER_FAILED: Final[str] = "Registration failed"
MSG_LOGGED_OUT: Final[str] = "Logged out successfully"
MSG_SESSION_EXPIRED: Final[str] = "Session expired. Please login again."
MSG_AUTH_REQUIRED: Final[str] = "Please login to continue."
MSG_FORBIDDEN: Final[str] = "Access denied. Insufficient privileges."
MSG_NOT_FOUND: Final[str] = "Resource not found."
MSG_CLIENT_ERROR: Final[str] = "Request failed."
MSG_SERVER_ERROR: Final[str] = "Server error. Please try again later."
MSG_NETWORK_ERROR: Final[str] = "Network error. Please check your connection."
MSG_VALIDATION_FAILED: Final[str] = "Validation failed"
MSG_MALFORMED_RESPONSE: Final[str] = "Unexpected response from server."
