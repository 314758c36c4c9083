"""Default values shared between the form view and the pipelines."""

from __future__ import annotations

DEFAULT_FORM_ID = 1
FORM_ID_QUERY_PARAM = "formid"

DEFAULT_SECTION = "General"
DEFAULT_SUBSECTION = "No Subsection"

DEFAULT_BUCKET = "profile_photo"
DEFAULT_UPLOAD_PREFIX = "files"
REQUEST_TIMEOUT = 10

DEFAULT_PAGE_TITLE = "Organisation intake"
DEFAULT_SUBMIT_LABEL = "Submit"
DEFAULT_SAVE_LABEL = "Save progress"
DEFAULT_RESUME_LABEL = "Find my answers"
DEFAULT_LOAD_PROGRESS_LABEL = "Load saved progress"
DEFAULT_EMAIL_LABEL = "Contact email"
DEFAULT_SELECT_PLACEHOLDER = "Select an option"
DEFAULT_THANK_YOU_MESSAGE = "Thank you for submitting!"

SUBMIT_ERROR_MESSAGE = "An error occurred while submitting the form. Please try again."
SAVE_SUCCESS_MESSAGE = "Progress saved successfully!"
SAVE_ERROR_MESSAGE = "Failed to save progress. Please try again."
SAVE_MISSING_EMAIL_MESSAGE = "Please enter your email before saving progress."
RESUME_MISSING_EMAIL_MESSAGE = "Please enter an email to search."
RESUME_ERROR_MESSAGE = "Failed to retrieve saved progress."
NO_ORGANIZATION_MESSAGE = "No organization found for this email."
NO_PROGRESS_MESSAGE = "No saved progress found for this email."
BUSY_MESSAGE = "That action is already running. Please wait for it to finish."
FETCH_ERROR_MESSAGE = "Unable to load the questions right now."
