# Prompt templates for the completion collaborator.
# Both prompts ask for a single JSON object; replies are repaired field by field
# afterwards, so the wording here steers the model but is not trusted.

# Natural-language task parsing
# Relative dates are resolved against {today}; tags come from a fixed vocabulary
PARSE_PROMPT = """다음 자연어 입력을 구조화된 할 일 데이터로 변환해주세요.

입력: "{input}"

다음 JSON 형식으로 응답해주세요:
{{
  "title": "할 일 제목 (간결하게)",
  "description": "상세 설명 (선택사항)",
  "due_date": "YYYY-MM-DD 형식의 마감일",
  "due_time": "HH:MM 형식의 시간 (선택사항)",
  "priority": 1, 2, 또는 3 (1: 높음, 2: 보통, 3: 낮음),
  "tags": ["태그1", "태그2"] (선택사항)
}}

=== 날짜 처리 규칙 ===
- "오늘": {today}
- "내일": {tomorrow}
- "모레": {day_after_tomorrow}
- "이번 주 금요일": {this_friday} (가장 가까운 금요일)
- "다음 주 월요일": {next_monday} (다음 주의 월요일)
- "주말": {weekend} (가장 가까운 토요일 또는 일요일)
- "다음 주": {next_monday} (다음 주의 월요일)

=== 시간 처리 규칙 ===
- "아침": 09:00
- "점심": 12:00
- "오후": 14:00 (기본값)
- "오후 3시": 15:00
- "오후 4시": 16:00
- "오후 5시": 17:00
- "저녁": 18:00
- "밤": 21:00
- "새벽": 06:00
- "오전": 09:00
- "오전 10시": 10:00
- "오전 11시": 11:00
- "정오": 12:00
- "자정": 00:00

=== 우선순위 키워드 ===
- 높음(1): "급하게", "중요한", "빨리", "꼭", "반드시", "긴급", "즉시", "빠르게"
- 보통(2): "보통", "적당히", 키워드 없음, 일반적인 할 일
- 낮음(3): "여유롭게", "천천히", "언젠가", "나중에", "여유있게"

=== 태그 분류 키워드 ===
- 업무: "회의", "보고서", "프로젝트", "업무", "발표", "프레젠테이션", "문서", "계획"
- 개인: "쇼핑", "친구", "가족", "개인", "여행", "휴가", "취미"
- 건강: "운동", "병원", "건강", "요가", "헬스", "산책", "검진"
- 학습: "공부", "책", "강의", "학습", "교육", "독서", "연구"

=== 응답 규칙 ===
1. 제목은 핵심 동작만 포함하여 간결하게 작성 (최대 50자)
2. 마감일이 명시되지 않은 경우 오늘 날짜로 설정
3. 시간 정보가 명시된 경우 due_time 필드에 HH:MM 형식으로 설정
4. "오후 3시"는 "15:00"으로, "오전 10시"는 "10:00"으로 변환
5. 우선순위는 키워드와 마감일 근접성을 종합적으로 판단
6. 태그는 내용에 맞는 카테고리를 1-2개 선택
7. 현재 날짜: {today}
8. JSON만 응답하고 다른 텍스트는 포함하지 마세요

=== 예시 ===
입력: "내일 오후 3시까지 중요한 팀 회의 준비하기"
출력: {{
  "title": "팀 회의 준비",
  "description": "내일 오후 3시까지 팀 회의 준비",
  "due_date": "{tomorrow}",
  "due_time": "15:00",
  "priority": 1,
  "tags": ["업무"]
}}
"""

# Productivity summary
# {sections} is the pre-rendered analysis data; {focus} depends on the period
SUMMARY_PROMPT = """당신은 개인 생산성 분석 전문가입니다. 사용자의 할 일 관리 데이터를 분석하여 실용적이고 격려적인 인사이트를 제공해주세요.

=== 분석 데이터 ===
분석 기간: {period_label}
비교 기간: {previous_period_label}

{sections}

=== 분석 요구사항 ===
{focus}

=== JSON 응답 형식 ===
{{
  "summary": "{period_label} 핵심 성과 요약",
  "urgentTasks": ["미완료 긴급 할 일들"],
  "completionAnalysis": {{
    "rate": "완료율과 변화 분석",
    "trend": "개선/하락 트렌드 설명",
    "strengths": "잘하고 있는 부분"
  }},
  "timeManagement": {{
    "deadlineCompliance": "마감일 준수 패턴 분석",
    "postponementPattern": "연기 경향과 원인",
    "productiveHours": "가장 생산적인 시간대"
  }},
  "productivityPatterns": {{
    "bestPerformingAreas": "가장 잘 완료하는 작업 유형",
    "strugglingAreas": "어려움을 겪는 영역",
    "priorityEffectiveness": "우선순위 설정 효과성"
  }},
  "insights": [
    "데이터 기반 구체적 인사이트",
    "패턴 분석 결과",
    "개선 포인트 발견사항"
  ],
  "recommendations": [
    "즉시 실행 가능한 구체적 조언",
    "시간 관리 개선 팁",
    "우선순위 조정 제안",
    "업무 분산 방법"
  ],
  "motivation": {{
    "achievements": "이번 기간 성취사항 강조",
    "encouragement": "격려와 동기부여 메시지",
    "nextSteps": "다음 목표 제시"
  }}
}}

=== 분석 원칙 ===
1. **긍정적 접근**: 성취를 먼저 인정하고 개선점을 격려 톤으로 제시
2. **구체성**: 모든 조언은 실행 가능하고 구체적으로 작성
3. **데이터 기반**: 제공된 수치와 패턴을 근거로 분석
4. **개인화**: 사용자의 고유한 패턴에 맞춘 맞춤형 조언
5. **실용성**: 일상에서 바로 적용할 수 있는 실용적 팁 제공
6. **동기부여**: 지속 가능한 동기부여와 성장 마인드셋 강화

=== 응답 규칙 ===
- 한국어로 친근하고 격려하는 톤 사용
- JSON 형식만 응답 (마크다운이나 추가 텍스트 금지)
- 모든 필드는 의미 있는 내용으로 채우기
- 데이터가 없는 경우 격려와 제안으로 대체
- 구체적인 수치와 예시 포함
"""

TODAY_FOCUS = """**오늘의 분석 초점:**
- 당일 집중도와 생산성 패턴
- 남은 할 일의 우선순위 조정
- 실시간 시간 관리 팁
- 하루 마무리를 위한 구체적 조언"""

WEEK_FOCUS = """**주간 분석 초점:**
- 주간 생산성 트렌드와 패턴
- 요일별 업무 분포 효율성
- 다음 주 계획 수립을 위한 제안
- 장기적 습관 개선 방향"""
