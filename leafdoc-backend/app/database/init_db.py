# app/database/init_db.py
from app.core.config import Config
from app.database.db import make_engine, init_schema

def main():
    print("Creating tables...")
    init_schema(make_engine(Config.database_url()))
    print("Done.")

if __name__ == "__main__":
    main()
