# Import Base class
from listseerr.db.base_class import Base

# Import all models here so that Base has them registered
# This is needed for Base.metadata.create_all()
from listseerr.models.media_list import MediaList
from listseerr.models.processing_execution import ProcessingExecution
from listseerr.models.provider_config import ProviderConfig
from listseerr.models.jellyseerr_config import JellyseerrConfig
from listseerr.models.settings import SettingsModel
from listseerr.models.cache import ProviderCache
