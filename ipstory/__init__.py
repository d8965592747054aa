"""
Pacote principal da aplicação Flask ip-story.
"""

def create_app(env_name=None, config_class=None, redis_client=None):
    from .main_startup import create_app as _create_app
    return _create_app(env_name, config_class, redis_client)

__all__ = ['create_app']
