# migrations/versions/20261018_0001_initial.py
# Initial schema for the installment back-office
from alembic import op

# Revision identifiers, used by Alembic.
revision = "20261018_0001_initial"
down_revision = None
branch_labels = None
depends_on = None

_TABLE_OPTS = "ENGINE=InnoDB DEFAULT CHARSET=utf8mb4 COLLATE=utf8mb4_0900_ai_ci"


def upgrade():
    # Users, roles, profiles
    op.execute(f"""
    CREATE TABLE IF NOT EXISTS `users` (
      `id` CHAR(36) NOT NULL,
      `email` VARCHAR(191) NOT NULL,
      `password_hash` VARCHAR(255) NOT NULL,
      `is_active` TINYINT(1) NOT NULL DEFAULT 1,
      `last_login` DATETIME NULL,
      `created_at` DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP,
      PRIMARY KEY (`id`),
      UNIQUE KEY `ux_users_email` (`email`)
    ) {_TABLE_OPTS};
    """)

    op.execute(f"""
    CREATE TABLE IF NOT EXISTS `user_roles` (
      `id` CHAR(36) NOT NULL,
      `user_id` CHAR(36) NOT NULL,
      `role` VARCHAR(32) NOT NULL,
      `created_by` CHAR(36) NULL,
      `created_at` DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP,
      `updated_at` DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP,
      PRIMARY KEY (`id`),
      UNIQUE KEY `ux_user_roles_user` (`user_id`),
      CONSTRAINT `fk_user_roles_user` FOREIGN KEY (`user_id`) REFERENCES `users` (`id`) ON DELETE CASCADE
    ) {_TABLE_OPTS};
    """)

    op.execute(f"""
    CREATE TABLE IF NOT EXISTS `profiles` (
      `id` CHAR(36) NOT NULL,
      `user_id` CHAR(36) NOT NULL,
      `full_name` VARCHAR(255) NULL,
      `created_at` DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP,
      `updated_at` DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP,
      PRIMARY KEY (`id`),
      UNIQUE KEY `ux_profiles_user` (`user_id`),
      CONSTRAINT `fk_profiles_user` FOREIGN KEY (`user_id`) REFERENCES `users` (`id`) ON DELETE CASCADE
    ) {_TABLE_OPTS};
    """)

    # Contracts
    op.execute(f"""
    CREATE TABLE IF NOT EXISTS `clients` (
      `id` CHAR(36) NOT NULL,
      `full_name` VARCHAR(255) NOT NULL,
      `city` VARCHAR(120) NULL,
      `source` VARCHAR(120) NULL,
      `manager` VARCHAR(255) NULL,
      `contract_amount` DECIMAL(15,2) NOT NULL,
      `first_payment` DECIMAL(15,2) NOT NULL DEFAULT 0,
      `monthly_payment` DECIMAL(15,2) NOT NULL,
      `installment_period` INT NOT NULL,
      `payment_day` INT NOT NULL,
      `contract_date` DATE NOT NULL,
      `total_paid` DECIMAL(15,2) NOT NULL DEFAULT 0,
      `remaining_amount` DECIMAL(15,2) NOT NULL DEFAULT 0,
      `deposit_paid` DECIMAL(15,2) NOT NULL DEFAULT 0,
      `deposit_target` DECIMAL(15,2) NOT NULL DEFAULT 50000,
      `is_terminated` TINYINT(1) NOT NULL DEFAULT 0,
      `terminated_at` DATETIME NULL,
      `termination_reason` TEXT NULL,
      `is_suspended` TINYINT(1) NOT NULL DEFAULT 0,
      `suspended_at` DATETIME NULL,
      `suspension_reason` TEXT NULL,
      `employee_id` CHAR(36) NULL,
      `user_id` CHAR(36) NULL,
      `version` INT NOT NULL DEFAULT 1,
      `created_at` DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP,
      `updated_at` DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP,
      PRIMARY KEY (`id`),
      KEY `ix_clients_employee` (`employee_id`),
      KEY `ix_clients_contract_date` (`contract_date`),
      CONSTRAINT `ck_clients_period` CHECK (`installment_period` >= 1),
      CONSTRAINT `ck_clients_payment_day` CHECK (`payment_day` BETWEEN 1 AND 31)
    ) {_TABLE_OPTS};
    """)

    # Payment ledger
    op.execute(f"""
    CREATE TABLE IF NOT EXISTS `payments` (
      `id` CHAR(36) NOT NULL,
      `client_id` CHAR(36) NOT NULL,
      `user_id` CHAR(36) NULL,
      `payment_number` INT NOT NULL,
      `original_amount` DECIMAL(15,2) NOT NULL,
      `custom_amount` DECIMAL(15,2) NULL,
      `due_date` DATE NOT NULL,
      `is_completed` TINYINT(1) NOT NULL DEFAULT 0,
      `completed_at` DATETIME NULL,
      `account` VARCHAR(120) NULL,
      `description` TEXT NULL,
      `payment_type` VARCHAR(20) NOT NULL DEFAULT 'monthly',
      `version` INT NOT NULL DEFAULT 1,
      `created_at` DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP,
      `updated_at` DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP,
      PRIMARY KEY (`id`),
      UNIQUE KEY `ux_payments_client_number` (`client_id`,`payment_number`),
      KEY `ix_payments_due_date` (`due_date`),
      CONSTRAINT `fk_payments_client` FOREIGN KEY (`client_id`) REFERENCES `clients` (`id`) ON DELETE CASCADE
    ) {_TABLE_OPTS};
    """)

    op.execute(f"""
    CREATE TABLE IF NOT EXISTS `payment_history` (
      `id` CHAR(36) NOT NULL,
      `payment_id` CHAR(36) NOT NULL,
      `client_id` CHAR(36) NOT NULL,
      `field_name` VARCHAR(64) NOT NULL,
      `old_value` TEXT NULL,
      `new_value` TEXT NULL,
      `changed_by` CHAR(36) NULL,
      `changed_at` DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP,
      PRIMARY KEY (`id`),
      KEY `ix_payment_history_payment` (`payment_id`),
      KEY `ix_payment_history_client` (`client_id`),
      CONSTRAINT `fk_payment_history_payment` FOREIGN KEY (`payment_id`) REFERENCES `payments` (`id`) ON DELETE CASCADE
    ) {_TABLE_OPTS};
    """)

    op.execute(f"""
    CREATE TABLE IF NOT EXISTS `payment_receipts` (
      `id` CHAR(36) NOT NULL,
      `client_id` CHAR(36) NOT NULL,
      `payment_id` CHAR(36) NULL,
      `file_name` VARCHAR(255) NOT NULL,
      `file_path` VARCHAR(1024) NOT NULL,
      `file_size` INT NOT NULL DEFAULT 0,
      `mime_type` VARCHAR(100) NULL,
      `user_id` CHAR(36) NULL,
      `uploaded_at` DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP,
      `created_at` DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP,
      `updated_at` DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP,
      PRIMARY KEY (`id`),
      KEY `ix_payment_receipts_client` (`client_id`),
      CONSTRAINT `fk_payment_receipts_client` FOREIGN KEY (`client_id`) REFERENCES `clients` (`id`) ON DELETE CASCADE,
      CONSTRAINT `fk_payment_receipts_payment` FOREIGN KEY (`payment_id`) REFERENCES `payments` (`id`) ON DELETE SET NULL
    ) {_TABLE_OPTS};
    """)

    # Referral agents
    op.execute(f"""
    CREATE TABLE IF NOT EXISTS `agents` (
      `id` CHAR(36) NOT NULL,
      `employee_id` CHAR(36) NULL,
      `agent_full_name` VARCHAR(255) NOT NULL,
      `agent_phone` VARCHAR(50) NOT NULL,
      `recommendation_name` VARCHAR(255) NULL,
      `lead_link` VARCHAR(1024) NULL,
      `mop_name` VARCHAR(255) NULL,
      `client_category` VARCHAR(120) NULL,
      `first_payment_date` DATE NULL,
      `first_payment_amount` DECIMAL(15,2) NOT NULL DEFAULT 0,
      `reward_amount` DECIMAL(15,2) NOT NULL DEFAULT 0,
      `remaining_payment` DECIMAL(15,2) NOT NULL DEFAULT 0,
      `payment_month_1` DECIMAL(15,2) NOT NULL DEFAULT 0,
      `payment_month_1_completed` TINYINT(1) NOT NULL DEFAULT 0,
      `payment_month_2` DECIMAL(15,2) NOT NULL DEFAULT 0,
      `payment_month_2_completed` TINYINT(1) NOT NULL DEFAULT 0,
      `payment_month_3` DECIMAL(15,2) NOT NULL DEFAULT 0,
      `payment_month_3_completed` TINYINT(1) NOT NULL DEFAULT 0,
      `payout_1` DECIMAL(15,2) NOT NULL DEFAULT 0,
      `payout_1_completed` TINYINT(1) NOT NULL DEFAULT 0,
      `payout_2` DECIMAL(15,2) NOT NULL DEFAULT 0,
      `payout_2_completed` TINYINT(1) NOT NULL DEFAULT 0,
      `payout_3` DECIMAL(15,2) NOT NULL DEFAULT 0,
      `payout_3_completed` TINYINT(1) NOT NULL DEFAULT 0,
      `created_at` DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP,
      `updated_at` DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP,
      PRIMARY KEY (`id`),
      KEY `ix_agents_employee` (`employee_id`)
    ) {_TABLE_OPTS};
    """)

    # Bonuses
    op.execute(f"""
    CREATE TABLE IF NOT EXISTS `employee_bonuses` (
      `id` CHAR(36) NOT NULL,
      `employee_id` CHAR(36) NOT NULL,
      `month` INT NOT NULL,
      `year` INT NOT NULL,
      `reviews_count` INT NOT NULL DEFAULT 0,
      `agents_count` INT NOT NULL DEFAULT 0,
      `created_at` DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP,
      `updated_at` DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP,
      PRIMARY KEY (`id`),
      UNIQUE KEY `ux_employee_bonuses_period` (`employee_id`,`month`,`year`)
    ) {_TABLE_OPTS};
    """)

    op.execute(f"""
    CREATE TABLE IF NOT EXISTS `incentive_rules` (
      `id` CHAR(36) NOT NULL,
      `employee_id` CHAR(36) NULL,
      `role` VARCHAR(32) NULL,
      `min_average_percent` DECIMAL(5,2) NOT NULL,
      `bonus_amount` DECIMAL(15,2) NOT NULL,
      `created_at` DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP,
      PRIMARY KEY (`id`),
      KEY `ix_incentive_rules_employee` (`employee_id`)
    ) {_TABLE_OPTS};
    """)


def downgrade():
    for table in (
        "incentive_rules", "employee_bonuses", "agents", "payment_receipts",
        "payment_history", "payments", "clients", "profiles", "user_roles", "users",
    ):
        op.execute(f"DROP TABLE IF EXISTS `{table}`")
