# /run.py
import os
from app import create_app

# Development by default; APP_CONFIG=Production for the deployed service
app = create_app(os.getenv("APP_CONFIG", "Development"))

if __name__ == "__main__":
    app.run(debug=app.config.get("DEBUG", False), port=int(os.getenv("PORT", "5000")))
