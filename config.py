# config.py


class Config:
    DEBUG = False
    TESTING = False
    WRITE_MAX_WORKERS = 8                   # parallel range writes per batch
    MAX_CONTENT_LENGTH = 16 * 1024 * 1024   # order export upload limit


class ProductionConfig(Config):
    pass


class DevelopmentConfig(Config):
    DEBUG = True


class TestingConfig(Config):
    TESTING = True
    DEBUG = True
