"""
Database connection - MongoDB async (Motor).
"""

import os
from motor.motor_asyncio import AsyncIOMotorClient

mongo_url = os.environ.get('MONGO_URL', 'mongodb://localhost:27017')
db_name = os.environ.get('DB_NAME', 'examgrader')

# Motor connects lazily, so importing this module never touches the network
client = AsyncIOMotorClient(mongo_url)
db = client[db_name]
