"""
Request assembly - turns uploaded documents and student metadata into the
multi-part message sent to the grading model.
"""

import asyncio
import base64
from typing import List, Optional

from examgrader.config import logger
from examgrader.models.evaluation import DocumentBlob, EvaluationRequest, StudentInfo
from examgrader.services.llm import DocumentContent, LlmChat, UserMessage
from examgrader.utils.concurrency import get_encoding_semaphore
from examgrader.utils.file_utils import is_supported_mime_type

MISSING_STUDENT_PAPER = "Please upload the student's exam paper before evaluating."

STUDENT_PAPER_MARKER = "\n--- STUDENT EXAM PAPER ---"
MARK_SCHEME_MARKER = "\n--- MARKING SCHEME ---"

GENERATION_CONFIG = {
    "response_mime_type": "application/json",
    "temperature": 0.1,
    "top_p": 0.8,
    "top_k": 20,
    "max_output_tokens": 8192,
}

IELTS_INSTRUCTIONS = """
**IELTS Grading Instructions:**
- Use the IELTS 9-band scoring system (0-9 with half bands: 0, 0.5, 1.0, 1.5, ..., 8.5, 9.0)
- Band 9: Expert user - Complete operational command of English
- Band 8: Very good user - Fully operational command with occasional inaccuracies
- Band 7: Good user - Operational command with occasional inaccuracies
- Band 6: Competent user - Generally effective command despite inaccuracies
- Band 5: Modest user - Partial command, copes with overall meaning
- Band 4: Limited user - Basic competence in familiar situations
- Band 3: Extremely limited user - Conveys general meaning in familiar situations
- Band 2: Intermittent user - Real communication is difficult
- Band 1: Non-user - No ability to use language
- Band 0: Did not attempt the test
- For Writing and Speaking, assess: Task Achievement/Response, Coherence & Cohesion, Lexical Resource, Grammatical Range & Accuracy
- For Reading and Listening, assess: Number of correct answers and map to band scores
- Provide band scores for individual criteria and overall band score
"""

O_LEVEL_INSTRUCTIONS = """
**Cambridge O-Level Grading Instructions:**
- Use Cambridge O-Level grading scale: A* (90-100%), A (80-89%), B (70-79%), C (60-69%), D (50-59%), E (40-49%), F (30-39%), G (20-29%)
- A* = Exceptional performance demonstrating comprehensive understanding
- A = Excellent performance with minor weaknesses
- B = Good performance with some weaknesses but shows understanding
- C = Satisfactory performance with adequate understanding
- D = Below average performance with limited understanding
- E = Weak performance but demonstrates basic knowledge
- F = Poor performance with significant gaps in knowledge
- G = Very poor performance with major deficiencies
- Below G = Unclassified (U)
- Award marks based on: Knowledge and understanding, Application of knowledge, Analysis and evaluation
- Consider partial credit for working shown even if final answer is incorrect
"""

A_LEVEL_INSTRUCTIONS = """
**Cambridge A-Level Grading Instructions:**
- Use Cambridge A-Level grading scale: A* (90-100%), A (80-89%), B (70-79%), C (60-69%), D (50-59%), E (40-49%)
- A* = Outstanding achievement with comprehensive understanding and excellent analytical skills
- A = Excellent achievement with good understanding and strong analytical skills
- B = Good achievement with sound understanding and adequate analytical skills
- C = Satisfactory achievement with reasonable understanding
- D = Below average achievement with limited understanding
- E = Weak achievement but demonstrates basic knowledge and skills
- Below E = Unclassified (U)
- Emphasize: Knowledge with understanding, Application, Analysis, Evaluation, Communication
- Expect higher-order thinking skills, critical analysis, and sophisticated reasoning
- Award credit for quality of written communication and logical structure
"""

STANDARD_INSTRUCTIONS = """
**Standard Grading Instructions:**
- Apply fair and consistent marking based on the marking scheme provided
- Award partial credit for correct methodology even if final answer is incorrect
- Consider the student's approach and working shown
- Provide constructive feedback for improvement
"""

GRADING_INSTRUCTIONS = {
    "IELTS": IELTS_INSTRUCTIONS,
    "O-LEVEL": O_LEVEL_INSTRUCTIONS,
    "A-LEVEL": A_LEVEL_INSTRUCTIONS,
}

SYSTEM_INSTRUCTION = """You are an expert exam evaluator designed to output only a single, valid JSON object with ABSOLUTE CONSISTENCY.

CRITICAL CONSISTENCY REQUIREMENTS:
- You will be given a document as a sequence of pages. The first page is page 1, the second is page 2, and so on.
- You MUST report the page number in this sequence where each question's text begins.
- Be PRECISE and CONSISTENT in your evaluation across similar questions.
- Use ONLY the marking scheme provided - do not add external knowledge.
- If no marking scheme is provided, grade against your knowledge of the examination's published scheme.
- For blank or minimal answers, award 0 marks but provide detailed feedback.

BLANK PAPER DETECTION:
- If the paper appears completely blank, still identify any visible questions from the paper.
- Mark all answers as blank/not attempted in the transcription.
- Award 0 marks but provide constructive feedback.
- Use phrases like "No answer provided", "Blank response", or "Not attempted" in the transcription.

Follow these steps precisely:
1.  **Page-by-Page Analysis:** Go through the student paper systematically, page by page, in the order provided. For each question you identify, record the page number where it appears (e.g., 1, 2, 3...).
2.  **Question Identification:** Identify each distinct question, even if the student hasn't answered it.
3.  **Answer Analysis:** For each question, carefully examine what the student has written. If it's blank, explicitly note this.
4.  **Mark Assignment:** Award marks based ONLY on the marking scheme. Be consistent - similar correct answers should get similar marks.
5.  **Accurate Calculation:** Ensure your total awarded marks add up correctly across all questions.

**STRICT JSON Schema to follow:**
{
  "summary": {"feedback": string},
  "questions": [
    {
      "pageNumber": number,
      "heading": string,
      "questionText": string,
      "transcription": string,
      "evaluation": string,
      "justification": string,
      "marks": "string"
    }
  ]
}

Field notes:
- pageNumber: the sequential page number (1, 2, 3...) where the question begins.
- heading: e.g. "Question 1a", "Question 2".
- transcription: exactly what the student wrote, or "No answer provided" if blank.
- marks: "awarded/possible", e.g. "8/10" or "0/5". Awarded must never exceed possible.

REMEMBER:
- Page numbers must be sequential and accurate.
- Total awarded marks across all questions must be mathematically correct.
- Blank answers get 0 marks but detailed feedback.
- Be consistent in your marking standards."""


def grading_instructions(exam_type: str) -> str:
    """Exam-type-specific grading instructions; unknown types get the standard block."""
    return GRADING_INSTRUCTIONS.get((exam_type or "").strip().upper(), STANDARD_INSTRUCTIONS)


def build_prompt(student_info: StudentInfo, total_possible_marks: Optional[int]) -> str:
    exam_type = student_info.exam_type or "Standard"
    total_text = str(total_possible_marks) if total_possible_marks else "Not specified - determine from the paper"

    return f"""You are an expert examiner. Your task is to evaluate a student's exam paper based on the provided marking scheme.

**Evaluation Details:**
- Student: {student_info.student_name or 'Unknown'} (ID: {student_info.student_id or 'Unknown'})
- Subject: {student_info.subject or 'Unknown'}
- Examination Type: {exam_type}
- Grading System: {student_info.grading_criteria or 'Standard grading'}
- Total Possible Marks: {total_text}

**IMPORTANT GRADING INSTRUCTIONS:**
{grading_instructions(exam_type)}

**General Instructions:**
1. Carefully analyze each question and the student's corresponding answer from the student paper files.
2. Strictly compare the student's answer against the criteria outlined in the marking scheme files.
3. Apply the specific grading system and standards for {exam_type} examinations.
4. For each question, provide a detailed evaluation, justification for the marks awarded, and the marks themselves.
5. Transcribe the student's answer accurately.
6. Provide an overall feedback summary with {exam_type}-specific recommendations.
7. Output the entire evaluation in the specified strict JSON format.

The student's paper and the marking scheme are provided as files."""


async def encode_document(document: DocumentBlob) -> DocumentContent:
    async with get_encoding_semaphore():
        data_b64 = await asyncio.to_thread(lambda: base64.b64encode(document.data).decode())
    return DocumentContent(data_b64, mime_type=document.mime_type, name=document.name)


async def encode_documents(documents: List[DocumentBlob]) -> List[DocumentContent]:
    """Base64-encode documents concurrently, skipping types the model cannot read."""
    supported = []
    for document in documents:
        if is_supported_mime_type(document.mime_type) and document.data:
            supported.append(document)
        else:
            logger.warning(f"Skipping unsupported document {document.name} ({document.mime_type})")
    return list(await asyncio.gather(*(encode_document(d) for d in supported)))


async def assemble_request(request: EvaluationRequest) -> UserMessage:
    """Build the prompt + inline documents for one evaluation. No I/O beyond encoding."""
    if not request.student_paper:
        raise ValueError(MISSING_STUDENT_PAPER)

    student_parts, scheme_parts = await asyncio.gather(
        encode_documents(request.student_paper),
        encode_documents(request.mark_scheme),
    )
    if not student_parts:
        raise ValueError(MISSING_STUDENT_PAPER)

    parts = [build_prompt(request.student_info, request.total_possible_marks), STUDENT_PAPER_MARKER]
    parts.extend(student_parts)
    parts.append(MARK_SCHEME_MARKER)
    parts.extend(scheme_parts)

    logger.info(f"Assembled grading request: {len(student_parts)} student file(s), "
                f"{len(scheme_parts)} mark scheme file(s), exam type {request.student_info.exam_type}")
    return UserMessage(parts)


def create_grading_chat(settings) -> LlmChat:
    """Gemini client configured for strict-JSON grading output."""
    return (
        LlmChat(api_key=settings.api_key, system_message=SYSTEM_INSTRUCTION)
        .with_model(settings.model)
        .with_params(**GENERATION_CONFIG)
    )
