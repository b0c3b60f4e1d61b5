"""
Constants used throughout the SSO operator.

This module defines all constant values used by the operator including:
- Custom resource coordinates
- Resource labels and annotations
- oauth2_proxy and exposecontroller defaults
- Poll intervals and timeouts
"""

# Custom resource coordinates
SSO_GROUP = "jenkins.io"
SSO_VERSION = "v1"
SSO_PLURAL = "ssos"
SSO_KIND = "SSO"
SSO_API_VERSION = f"{SSO_GROUP}/{SSO_VERSION}"
SSO_CRD_NAME = f"{SSO_PLURAL}.{SSO_GROUP}"

# Label constants for resource identification
APP_LABEL = "app"
RELEASE_LABEL = "release"
SSO_LABEL = "sso"
OPERATOR_LABEL_KEY = "jenkins.io/managed-by"
OPERATOR_LABEL_VALUE = "sso-operator"

# Annotations consumed by exposecontroller and cert-manager
EXPOSE_ANNOTATION = "fabric8.io/expose"
EXPOSE_INGRESS_ANNOTATION = "fabric8.io/ingress.annotations"
INGRESS_NAME_ANNOTATION = "fabric8.io/ingress.name"
INGRESS_CLASS_ANNOTATION = "kubernetes.io/ingress.class"
CERT_MANAGER_ANNOTATION = "certmanager.k8s.io/issuer"
INGRESS_CLASS = "nginx"

# Operator configuration secret
OPERATOR_SECRET_NAME = "sso-operator-secret"  # nosec B105
COOKIE_KEY_FIELD = "ssoCookieKey"
COOKIE_SECRET_LENGTH = 32

# RBAC
SERVICE_ACCOUNT_KIND = "ServiceAccount"
CLUSTER_ROLE_KIND = "ClusterRole"
SERVICE_ACCOUNT_NAME = "sso-operator-sa"

# oauth2_proxy
DEFAULT_PROXY_IMAGE = "quay.io/pusher/oauth2_proxy"
DEFAULT_PROXY_IMAGE_TAG = "v3.1.0"
PROXY_CONFIG_PATH = "/config/oauth2_proxy.cfg"
PROXY_CONFIG_FILE = "oauth2_proxy.cfg"
PROXY_CONFIG_DIR = "/config"
PROXY_CONFIG_VOLUME = "proxy-config"
PROXY_SECRET_SUFFIX = "proxy-secret"  # nosec B105
PROXY_DEPLOYMENT_SUFFIX = "oauth2-proxy"
SECRET_VERSION_ENV = "SECRET_VERSION"  # nosec B105
PROXY_PORT_NAME = "proxy-port"
PROXY_PORT = 4180
PROXY_PUBLIC_PORT = 80
PROXY_HEALTH_PATH = "/ping"
PROXY_REPLICAS = 1
PLACEHOLDER_PROXY_URL = "https://fake-oauth2-proxy"
CALLBACK_PATH = "/oauth2/callback"
OIDC_SCOPE = "openid email profile"

# exposecontroller
EXPOSE_COMMAND = "/exposecontroller"
EXPOSE_CONFIG_PATH = "/etc/exposecontroller/config.yml"
EXPOSE_CONFIG_FILE = "config.yml"
EXPOSE_CONFIG_DIR = "/etc/exposecontroller"
EXPOSE_CONFIG_VOLUME = "expose-config"
EXPOSE_CONFIG_SUFFIX = "expose-config"
EXPOSE_NAMESPACE_ENV = "KUBERNETES_NAMESPACE"
EXPOSER_KIND = "Ingress"
EXPOSE_JOB_SUFFIX = "expose"
CLEANUP_JOB_SUFFIX = "cleanup"

# Kubernetes naming
MAX_NAME_LENGTH = 63

# Poll intervals and timeouts (in seconds)
SERVICE_CHECK_INTERVAL = 10
SERVICE_CREATE_TIMEOUT = 60
POD_CHECK_INTERVAL = 2
POD_READY_TIMEOUT = 300
DEPLOYMENT_CHECK_INTERVAL = 5
DEPLOYMENT_STABLE_TIMEOUT = 300
EXPOSE_CHECK_INTERVAL = 10
EXPOSE_TIMEOUT = 300
CLEANUP_CHECK_INTERVAL = 10
CLEANUP_TIMEOUT = 120
JOB_DELETE_CHECK_INTERVAL = 2
JOB_DELETE_TIMEOUT = 60

# Transient Kubernetes API failures that polling treats as "not ready yet"
RETRYABLE_API_STATUSES = frozenset({408, 429, 500, 503, 504})
RETRYABLE_API_REASONS = frozenset(
    {"Timeout", "ServerTimeout", "TooManyRequests", "InternalError"}
)

# Status phases used for metrics
PHASE_INITIALIZED = "Initialized"
PHASE_FAILED = "Failed"
PHASE_DELETED = "Deleted"
