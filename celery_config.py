from celery import Celery
import os


def get_postgresql_url_from_supabase():
    """Try to get PostgreSQL URL from Supabase config or return None if not available"""
    try:
        from supabase_config import get_postgresql_url
        return get_postgresql_url()
    except ValueError:
        return None


def make_celery(app=None):
    # An explicit broker wins, then Postgres via Supabase, then the filesystem
    broker = os.environ.get('CELERY_BROKER_URL')
    backend = os.environ.get('CELERY_RESULT_BACKEND')

    if not broker:
        postgres_url = get_postgresql_url_from_supabase()
        if postgres_url:
            broker = f'sqla+{postgres_url}'
            backend = backend or f'db+{postgres_url}'
        else:
            broker = 'filesystem://'
    if not backend:
        backend = 'file://./celery_results'
        os.makedirs('celery_results', exist_ok=True)

    celery = Celery(
        'seo_health',
        broker=broker,
        backend=backend,
        include=['tasks']
    )

    celery.conf.update(
        result_expires=3600,  # Results expire after 1 hour
        worker_max_tasks_per_child=1000,
        worker_prefetch_multiplier=1,
        task_track_started=True,
        task_time_limit=1800,  # 30 minutes hard limit per scan
        task_soft_time_limit=1500,
    )

    if broker == 'filesystem://':
        for folder in ('in', 'out', 'processed'):
            os.makedirs(os.path.join('celery_broker', folder), exist_ok=True)
        celery.conf.update(
            broker_transport_options={
                'data_folder_in': './celery_broker/in',
                'data_folder_out': './celery_broker/in',
                'data_folder_processed': './celery_broker/processed'
            }
        )

    if app:
        # If we're using Flask, integrate with the app context
        class FlaskTask(celery.Task):
            def __call__(self, *args, **kwargs):
                with app.app_context():
                    return self.run(*args, **kwargs)

        celery.Task = FlaskTask

    return celery
