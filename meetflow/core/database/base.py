# File: meetflow/core/database/base.py

from sqlalchemy.orm import declarative_base

# The shared registry. Every persisted model (pipeline jobs) inherits from this.
Base = declarative_base()
