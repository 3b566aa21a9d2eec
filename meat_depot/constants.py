# ==============================================================================
# CONSTANTES Y DATOS POR DEFECTO
# ==============================================================================
# Valores iniciales del estado (lo que se usa cuando no hay nada guardado
# localmente) y nombres fijos compartidos por el store y los backends.
# ==============================================================================

from typing import Any, Dict, List

# ═══════════════════════════════════════════════════════════════════════════════
# CLAVES DE ESTADO
# ═══════════════════════════════════════════════════════════════════════════════
# Clave de estado -> nombre del archivo local (equivalente a una clave de
# localStorage). Las claves de estado coinciden con las del sobre de sync.
STORAGE_KEYS: Dict[str, str] = {
    'products': 'md_products',
    'orders': 'md_orders',
    'posts': 'md_posts',
    'users': 'md_users',
    'promoCodes': 'md_promocodes',
    'currentUser': 'md_currentUser',
    'cart': 'md_cart',
    'notifications': 'md_notifications',
    'config': 'md_config',
    'activityLogs': 'md_activityLogs',
    'rawMaterials': 'md_rawMaterials',
    'productionBatches': 'md_productionBatches',
}

VERSIONS_STORAGE_KEY = 'md_versions'

# Colecciones que viajan en el sobre de sincronización (orden del sobre)
SYNCED_KEYS: List[str] = [
    'products',
    'users',
    'orders',
    'posts',
    'promoCodes',
    'config',
    'activityLogs',
    'rawMaterials',
    'productionBatches',
]

# Cambios en estas claves disparan el debounce de sync.
# activityLogs NO está: cada sync escribe un log y provocaría un bucle.
WATCHED_KEYS = frozenset([
    'products',
    'orders',
    'users',
    'posts',
    'promoCodes',
    'config',
    'rawMaterials',
    'productionBatches',
])

# Nombres legibles para el log de restauración
SECTION_LABELS: Dict[str, str] = {
    'products': 'Products',
    'users': 'Users',
    'orders': 'Orders',
    'posts': 'Posts',
    'promoCodes': 'Promo Codes',
    'activityLogs': 'Activity Logs',
    'rawMaterials': 'Raw Materials',
    'productionBatches': 'Production Batches',
    'config': 'Config',
}

MAX_ACTIVITY_LOGS = 1000

# ═══════════════════════════════════════════════════════════════════════════════
# NOTIFICACIONES DE SYNC
# ═══════════════════════════════════════════════════════════════════════════════
TOKEN_EXPIRED_TITLE = "Sync Error: Token Expired"
ADMIN_USER_ID = 'admin'

# ═══════════════════════════════════════════════════════════════════════════════
# BACKENDS
# ═══════════════════════════════════════════════════════════════════════════════
BACKUP_FILENAME = 'meat_depot_app_data.json'
CHECKPOINT_PREFIX = 'meat_depot_checkpoint_'

SHEET_TAB_NAME = 'System_State'
SHEET_CHUNK_SIZE = 40000
SHEET_HEADER_PREFIX = '#md-chunks:'

FIREBASE_COLLECTION = 'meat_depot_system'
FIREBASE_DOC_IDS: List[str] = [
    'config',
    'products',
    'users',
    'orders',
    'posts',
    'promoCodes',
    'rawMaterials',
    'productionBatches',
    'activityLogs',
]

# Hoja por defecto si config.googleSheetUrl está vacío
CUSTOMER_DATABASE_SHEET = '1fWqLTRfqRJObWB59d2vdWl--LAfm7m-8'

# ═══════════════════════════════════════════════════════════════════════════════
# DATOS INICIALES
# ═══════════════════════════════════════════════════════════════════════════════

CATEGORIES = ['Steaks', 'Biltong', 'Braai Packs', 'Specials', 'Chicken', 'Pork', 'Lamb', 'Sausage', 'Pantry']

# La contraseña del admin NO se guarda aquí: se hashea desde
# settings['ADMIN_PASSWORD'] al arrancar el store.
DEFAULT_ADMIN: Dict[str, Any] = {
    'id': ADMIN_USER_ID,
    'username': 'MeatAdmin98',
    'name': 'MeatAdmin98',
    'email': 'admin@meatdepot.co.za',
    'phone': '0844012488',
    'role': 'ADMIN',
    'loyaltyPoints': 0,
    'permissions': ['orders', 'products', 'content'],
}

INITIAL_CONFIG: Dict[str, Any] = {
    'paymentEnabled': False,
    'deliveryFee': 50,
    'deliveryRatePerKm': 10,
    'minimumOrder': 250,
    'collectionInstructions': 'Collection in Westering- Address will be shared on WhatsApp during the ordering process',
    'homepageBanners': [
        'https://images.unsplash.com/photo-1544025162-d76694265947?q=80&w=1200',
    ],
    'heroTitle': "Savour\nThe Cut.",
    'heroSubtitle': "Expertly sourced local meats. Freshly cut, perfectly aged or cured and delivered directly to your door in Gqeberha.",
    'heroButtonText': "SHOP COLLECTION",
    'promoText': 'DEPOTFRESH: R50 OFF YOUR FIRST ORDER!',
    'announcement': 'FREE DELIVERY FOR ORDERS OVER R1500 IN GQEBERHA!',
    'logoUrl': 'https://meatdepot.co.za/wp-content/uploads/2026/02/app_logo.webp',
    'brandColor': '#f4d300',
    'homeSectionOrder': ['hero', 'categories', 'featured', 'news'],
    'deliveryAreas': [
        'Gqeberha', 'Westering', 'Walmer', 'Summerstrand', 'Humewood',
        'Lorraine', 'Newton Park', 'Mount Pleasant', 'Cotswold', 'Sunridge Park',
    ],
    'enableVacuumPack': False,
    'businessDetails': {
        'companyName': "Meat Depot Gqeberha",
        'addressLine1': "63 Clarence Road, Westering, 6025",
        'addressLine2': "Port Elizabeth, RSA",
        'email': "admin@meatdepot.co.za",
        'invoiceFooterText': "Thank you for choosing Meat Depot. Gqeberha's finest cuts.",
    },
    'soldOutBanner': {
        'visible': False,
        'text': "WE ARE SOLD OUT! NEXT DROP FRIDAY 9AM",
        'backgroundColor': "#dc2626",
        'textColor': "#ffffff",
    },

    # ─── Credenciales de backends (se sincronizan junto con los datos) ───
    'googleDrive': {
        'accessToken': '',
        'folderId': '',
    },
    'googleSheetUrl': '',
    'firebaseConfig': {
        'apiKey': '',
        'authDomain': '',
        'projectId': '',
        'storageBucket': '',
        'messagingSenderId': '',
        'appId': '',
        'serviceAccount': None,  # ruta o dict de la cuenta de servicio
    },
    'backupMethod': 'CUSTOM_DOMAIN',
    'customDomain': {
        'url': '',
        'apiKey': '',
    },
    'appUrl': 'https://meatdepot.co.za/order-app/',
}

# Secciones de config que nunca se exponen en la tienda pública
CREDENTIAL_SECTIONS = ('googleDrive', 'firebaseConfig', 'customDomain')

INITIAL_DATA: Dict[str, Any] = {
    'products': [],
    'orders': [],
    'posts': [],
    'users': [],
    'promoCodes': [],
    'currentUser': None,
    'cart': [],
    'notifications': [],
    'activityLogs': [],
    'rawMaterials': [],
    'productionBatches': [],
}
