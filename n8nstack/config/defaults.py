"""
n8nstack - configuration constants

Paths, images, ports and operational bounds shared by every component.
"""

# ─── Installation Paths ───────────────────────────────────────────────────────

INSTALL_DIR = "/opt/n8n"
ENV_FILE_NAME = ".env"
COMPOSE_FILE_NAME = "docker-compose.yml"
BOOTSTRAP_SCRIPT_NAME = "init-data.sh"
APP_DATA_DIR_NAME = "n8n_data"
BACKUP_DIR_NAME = "backups"

# Optional YAML file overriding the tuning defaults
TUNING_FILE = "/etc/n8nstack/tuning.yml"
TUNING_FILE_ENV_VAR = "N8NSTACK_TUNING"

# uid/gid of the "node" user inside the application image
APP_UID = 1000
APP_GID = 1000


# ─── Compose Project ──────────────────────────────────────────────────────────

PROJECT_NAME = "n8n"
NETWORK_NAME = "n8n_net"

SERVICE_DATABASE = "postgres"
SERVICE_QUEUE = "redis"
SERVICE_MAIN = "n8n"
SERVICE_WORKER = "n8n-worker"


# ─── Images ───────────────────────────────────────────────────────────────────

N8N_IMAGE_REPOSITORY = "docker.n8n.io/n8nio/n8n"
POSTGRES_IMAGE = "postgres:16"
REDIS_IMAGE = "redis:7-alpine"


# ─── Ports ────────────────────────────────────────────────────────────────────

N8N_PORT = 5678
POSTGRES_HOST_PORT = 5433
POSTGRES_CONTAINER_PORT = 5432
REDIS_PORT = 6379


# ─── Database ─────────────────────────────────────────────────────────────────

POSTGRES_SUPERUSER = "postgres"
POSTGRES_DATABASE = "n8n"
POSTGRES_APP_USER = "n8n_user"

# Created by the application's own migrations, never by the bootstrap script
SCHEMA_READY_TABLE = "workflow_entity"


# ─── Readiness Bounds ─────────────────────────────────────────────────────────

SCHEMA_TIMEOUT = 300
SCHEMA_INTERVAL = 5
HEALTH_TIMEOUT = 300
HEALTH_INTERVAL = 5
HEALTH_ENDPOINT = "/healthz"


# ─── Certificates and Reverse Proxy ───────────────────────────────────────────

CERTBOT_WEBROOT = "/var/www/certbot"
LETSENCRYPT_DIR = "/etc/letsencrypt"
DHPARAM_FILE = "/etc/letsencrypt/ssl-dhparams.pem"
DHPARAM_BITS = 2048
TLS_OPTIONS_FILE = "/etc/letsencrypt/options-ssl-nginx.conf"
TLS_OPTIONS_URL = (
    "https://raw.githubusercontent.com/certbot/certbot/master/"
    "certbot-nginx/certbot_nginx/_internal/tls_configs/options-ssl-nginx.conf"
)
CERT_ATTEMPTS = 3
CERT_RETRY_DELAY = 30

NGINX_SITES_AVAILABLE = "/etc/nginx/sites-available"
NGINX_SITES_ENABLED = "/etc/nginx/sites-enabled"
NGINX_CONF_D = "/etc/nginx/conf.d"
NGINX_SITE_NAME = "n8n"


# ─── Environment Probe Thresholds ─────────────────────────────────────────────

SUPPORTED_OS_IDS = ("ubuntu", "debian")
MIN_CPU_CORES = 2
MIN_MEMORY_GB = 2.0
MIN_DISK_GB = 20.0
PUBLIC_IP_URLS = ("https://ifconfig.me/ip", "https://api.ipify.org")


# ─── Runtime Control ──────────────────────────────────────────────────────────

MIN_WORKER_CONCURRENCY = 1
MAX_WORKER_CONCURRENCY = 20
MIN_WORKER_REPLICAS = 1
BACKUP_RETENTION_DAYS = 14
CONNECTIVITY_CHECK_URL = "https://api.n8n.io"


# ─── Scheduled Jobs ───────────────────────────────────────────────────────────

CRON_MARKER = "n8nstack"
CRON_BACKUP = "0 2 * * *"        # daily 02:00
CRON_CLEANUP = "0 3 * * 0"       # Sunday 03:00
CRON_RENEWAL = "0 4 * * *"       # daily 04:00
BACKUP_LOG = "/var/log/n8n-backup.log"
CLEANUP_LOG = "/var/log/n8n-cleanup.log"
RENEWAL_LOG = "/var/log/n8n-certbot.log"

SYSCTL_FILE = "/etc/sysctl.d/60-n8n.conf"
