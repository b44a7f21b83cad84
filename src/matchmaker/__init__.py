
from dotenv import load_dotenv

# Load environment variables from .env as early as possible so settings
# built at import-time or startup see the configured values.
load_dotenv()
