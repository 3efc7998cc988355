from sqlalchemy.orm import declarative_base

# Shared declarative base for every table the service reads or writes
Base = declarative_base()
