"""add_progression_and_rewards

Revision ID: 5c1e7a2b9d40
Revises:
Create Date: 2026-10-17 12:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = '5c1e7a2b9d40'
down_revision = None
branch_labels = None
depends_on = None


def owner_columns() -> list:
	return [
		sa.Column('user_id', sa.String(), nullable=True),
		sa.Column('client_id', sa.String(), nullable=True),
	]


def create_owner_indexes(table_name: str, unique_name: str, *columns: str) -> None:
	"""Индексы колонок владельца и частичные уникальные индексы по каждой из них"""
	op.create_index(op.f(f'ix_{table_name}_user_id'), table_name, ['user_id'], unique=False)
	op.create_index(op.f(f'ix_{table_name}_client_id'), table_name, ['client_id'], unique=False)
	op.create_index(
		f'{unique_name}_user', table_name, ['user_id', *columns], unique=True,
		postgresql_where=sa.text('user_id IS NOT NULL')
	)
	op.create_index(
		f'{unique_name}_client', table_name, ['client_id', *columns], unique=True,
		postgresql_where=sa.text('client_id IS NOT NULL')
	)


def single_owner(table_name: str) -> sa.CheckConstraint:
	return sa.CheckConstraint('(user_id IS NULL) <> (client_id IS NULL)', name=f'ck_{table_name}_single_owner')


def template_columns() -> list:
	return [
		sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
		sa.Column('quest_type', sa.String(), nullable=False),
		sa.Column('quest_category', sa.String(), nullable=True),
		sa.Column('description', sa.Text(), nullable=False),
		sa.Column('target_value', sa.Integer(), nullable=False),
		sa.Column('reward_vcoin', sa.Integer(), nullable=False, server_default='0'),
		sa.Column('reward_ruby', sa.Integer(), nullable=False, server_default='0'),
		sa.Column('reward_xp', sa.Integer(), nullable=False, server_default='0'),
		sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
		sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
	]


def upgrade() -> None:
	# Шаблоны квестов
	op.create_table(
		'daily_quests',
		*template_columns(),
		sa.Column('difficulty', sa.String(), nullable=False),
		sa.PrimaryKeyConstraint('id')
	)
	op.create_index(op.f('ix_daily_quests_quest_type'), 'daily_quests', ['quest_type'], unique=False)
	op.create_index(op.f('ix_daily_quests_difficulty'), 'daily_quests', ['difficulty'], unique=False)
	op.create_index(op.f('ix_daily_quests_is_active'), 'daily_quests', ['is_active'], unique=False)

	op.create_table(
		'level_quests',
		*template_columns(),
		sa.Column('level_required', sa.Integer(), nullable=False),
		sa.PrimaryKeyConstraint('id')
	)
	op.create_index(op.f('ix_level_quests_quest_type'), 'level_quests', ['quest_type'], unique=False)
	op.create_index(op.f('ix_level_quests_level_required'), 'level_quests', ['level_required'], unique=False)
	op.create_index(op.f('ix_level_quests_is_active'), 'level_quests', ['is_active'], unique=False)

	# Экземпляры квестов
	op.create_table(
		'user_daily_quests',
		sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
		*owner_columns(),
		sa.Column('quest_id', postgresql.UUID(as_uuid=True), nullable=False),
		sa.Column('progress', sa.Integer(), nullable=False, server_default='0'),
		sa.Column('completed', sa.Boolean(), nullable=False, server_default='false'),
		sa.Column('claimed', sa.Boolean(), nullable=False, server_default='false'),
		sa.Column('quest_date', sa.Date(), nullable=False),
		sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
		sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
		sa.ForeignKeyConstraint(['quest_id'], ['daily_quests.id']),
		sa.PrimaryKeyConstraint('id'),
		single_owner('user_daily_quests'),
		sa.CheckConstraint('NOT claimed OR completed', name='ck_user_daily_quests_claimed_completed')
	)
	op.create_index(op.f('ix_user_daily_quests_quest_id'), 'user_daily_quests', ['quest_id'], unique=False)
	op.create_index(op.f('ix_user_daily_quests_quest_date'), 'user_daily_quests', ['quest_date'], unique=False)
	create_owner_indexes('user_daily_quests', 'uq_user_daily_quest_date', 'quest_id', 'quest_date')

	op.create_table(
		'user_level_quests',
		sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
		*owner_columns(),
		sa.Column('quest_id', postgresql.UUID(as_uuid=True), nullable=False),
		sa.Column('progress', sa.Integer(), nullable=False, server_default='0'),
		sa.Column('completed', sa.Boolean(), nullable=False, server_default='false'),
		sa.Column('claimed', sa.Boolean(), nullable=False, server_default='false'),
		sa.Column('unlocked_at', sa.DateTime(timezone=True), nullable=True),
		sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
		sa.Column('claimed_at', sa.DateTime(timezone=True), nullable=True),
		sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
		sa.ForeignKeyConstraint(['quest_id'], ['level_quests.id']),
		sa.PrimaryKeyConstraint('id'),
		single_owner('user_level_quests'),
		sa.CheckConstraint('NOT claimed OR completed', name='ck_user_level_quests_claimed_completed')
	)
	op.create_index(op.f('ix_user_level_quests_quest_id'), 'user_level_quests', ['quest_id'], unique=False)
	create_owner_indexes('user_level_quests', 'uq_user_level_quest', 'quest_id')

	# Награды за вход
	op.create_table(
		'login_rewards',
		sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
		sa.Column('day_number', sa.Integer(), nullable=False),
		sa.Column('reward_vcoin', sa.Integer(), nullable=False, server_default='0'),
		sa.Column('reward_ruby', sa.Integer(), nullable=False, server_default='0'),
		sa.Column('reward_energy', sa.Integer(), nullable=False, server_default='0'),
		sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
		sa.PrimaryKeyConstraint('id')
	)
	op.create_index(op.f('ix_login_rewards_day_number'), 'login_rewards', ['day_number'], unique=True)

	op.create_table(
		'user_login_rewards',
		sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
		*owner_columns(),
		sa.Column('current_day', sa.Integer(), nullable=False, server_default='0'),
		sa.Column('last_claim_date', sa.Date(), nullable=True),
		sa.Column('total_days_claimed', sa.Integer(), nullable=False, server_default='0'),
		sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
		sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
		sa.PrimaryKeyConstraint('id'),
		single_owner('user_login_rewards')
	)
	create_owner_indexes('user_login_rewards', 'uq_user_login_rewards_owner')

	# Отношения с персонажами
	op.create_table(
		'character_relationship',
		sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
		*owner_columns(),
		sa.Column('character_id', sa.String(), nullable=False),
		sa.Column('relationship_level', sa.Integer(), nullable=False, server_default='0'),
		sa.Column('relationship_xp', sa.Integer(), nullable=False, server_default='0'),
		sa.Column('last_interaction', sa.DateTime(timezone=True), nullable=True),
		sa.PrimaryKeyConstraint('id'),
		single_owner('character_relationship')
	)
	op.create_index(op.f('ix_character_relationship_character_id'), 'character_relationship', ['character_id'], unique=False)
	create_owner_indexes('character_relationship', 'uq_character_relationship_owner', 'character_id')

	op.create_table(
		'relationship_milestones',
		sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
		*owner_columns(),
		sa.Column('character_id', sa.String(), nullable=False),
		sa.Column('milestone_level', sa.Integer(), nullable=False),
		sa.Column('claimed', sa.Boolean(), nullable=False, server_default='false'),
		sa.Column('claimed_at', sa.DateTime(timezone=True), nullable=True),
		sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
		sa.PrimaryKeyConstraint('id'),
		single_owner('relationship_milestones')
	)
	op.create_index(op.f('ix_relationship_milestones_character_id'), 'relationship_milestones', ['character_id'], unique=False)
	create_owner_indexes('relationship_milestones', 'uq_relationship_milestones_owner', 'character_id', 'milestone_level')

	# Валюта и статистика
	op.create_table(
		'user_currency',
		sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
		*owner_columns(),
		sa.Column('vcoin', sa.Integer(), nullable=False, server_default='0'),
		sa.Column('ruby', sa.Integer(), nullable=False, server_default='0'),
		sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
		sa.PrimaryKeyConstraint('id'),
		single_owner('user_currency')
	)
	create_owner_indexes('user_currency', 'uq_user_currency_owner')

	op.create_table(
		'user_stats',
		sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
		*owner_columns(),
		sa.Column('level', sa.Integer(), nullable=False, server_default='1'),
		sa.Column('xp', sa.Integer(), nullable=False, server_default='0'),
		sa.Column('energy', sa.Integer(), nullable=False, server_default='100'),
		sa.Column('energy_updated_at', sa.DateTime(timezone=True), nullable=True),
		sa.Column('login_streak', sa.Integer(), nullable=False, server_default='0'),
		sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
		sa.PrimaryKeyConstraint('id'),
		single_owner('user_stats')
	)
	create_owner_indexes('user_stats', 'uq_user_stats_owner')

	seed_login_rewards()
	seed_quest_templates()


def seed_login_rewards() -> None:
	# 30 дней: VCoin растет с каждым днем, Ruby каждую неделю, энергия каждые 3 дня
	for day in range(1, 31):
		vcoin = 50 + (day - 1) * 10
		ruby = 50 if day == 30 else (5 if day % 7 == 0 else 0)
		energy = 10 if day % 3 == 0 else 0
		op.execute(f"""
			INSERT INTO login_rewards (id, day_number, reward_vcoin, reward_ruby, reward_energy, created_at)
			VALUES (gen_random_uuid(), {day}, {vcoin}, {ruby}, {energy}, NOW())
		""")


def seed_quest_templates() -> None:
	# (quest_type, difficulty, description, target_value, vcoin, ruby, xp)
	daily_quests = [
		("swipe_character", "easy", "Swipe through 5 characters", 5, 50, 0, 20),
		("swipe_background", "easy", "Browse 3 backgrounds", 3, 50, 0, 20),
		("chat_streak", "easy", "Chat with a character", 1, 40, 0, 15),
		("dance_character", "easy", "Make a character dance", 1, 40, 0, 15),
		("voice_call", "medium", "Make a voice call", 1, 100, 0, 40),
		("capture_characters", "medium", "Capture 2 character photos", 2, 100, 0, 40),
		("obtain_media", "medium", "Obtain a new media", 1, 120, 0, 50),
		("video_call", "hard", "Make a video call", 1, 200, 5, 80),
		("unlock_costume", "hard", "Unlock a costume", 1, 150, 10, 100),
	]
	# (quest_type, level_required, description, target_value, vcoin, ruby, xp)
	level_quests = [
		("chat_streak", 1, "Chat 3 times", 3, 100, 0, 50),
		("swipe_character", 1, "Meet 10 characters", 10, 100, 0, 50),
		("unlock_character", 2, "Unlock a character", 1, 200, 5, 100),
		("capture_backgrounds", 3, "Capture 5 backgrounds", 5, 300, 5, 150),
		("obtain_characters", 4, "Collect 5 characters", 5, 400, 10, 200),
		("reach_relationship", 5, "Reach Acquaintance with a character", 1, 500, 20, 300),
		("login_streak", 5, "Log in 7 days", 7, 500, 20, 300),
	]

	for quest_type, difficulty, description, target, vcoin, ruby, xp in daily_quests:
		op.execute(f"""
			INSERT INTO daily_quests (id, quest_type, difficulty, description, target_value, reward_vcoin, reward_ruby, reward_xp, is_active, created_at)
			VALUES (
				gen_random_uuid(),
				'{quest_type}',
				'{difficulty}',
				'{description.replace("'", "''")}',
				{target}, {vcoin}, {ruby}, {xp}, true, NOW()
			)
		""")

	for quest_type, level_required, description, target, vcoin, ruby, xp in level_quests:
		op.execute(f"""
			INSERT INTO level_quests (id, quest_type, level_required, description, target_value, reward_vcoin, reward_ruby, reward_xp, is_active, created_at)
			VALUES (
				gen_random_uuid(),
				'{quest_type}',
				{level_required},
				'{description.replace("'", "''")}',
				{target}, {vcoin}, {ruby}, {xp}, true, NOW()
			)
		""")


def downgrade() -> None:
	op.drop_table('user_stats')
	op.drop_table('user_currency')
	op.drop_table('relationship_milestones')
	op.drop_table('character_relationship')
	op.drop_table('user_login_rewards')
	op.drop_table('login_rewards')
	op.drop_table('user_level_quests')
	op.drop_table('user_daily_quests')
	op.drop_table('level_quests')
	op.drop_table('daily_quests')
